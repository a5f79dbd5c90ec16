"""
Interaction lists: every candidate interaction of one channel for a given
probe, energy and target (CC and NC variants, struck proton or neutron,
nucleon pair for MEC, charm baryon for exclusive QEL charm).
"""

from typing import List

from .. import particles as pdglib
from ..interaction import Interaction, Target

CHANNELS = ("QEL", "QEL_CHARM", "DIS", "DIS_CHARM", "RES", "COH", "MEC")

# charm baryons reachable from each struck nucleon in nu CC QEL
QEL_CHARM_BARYONS = {
    pdglib.PDG_NEUTRON: (pdglib.PDG_LAMBDA_CP, pdglib.PDG_SIGMA_CP),
    pdglib.PDG_PROTON: (pdglib.PDG_SIGMA_CPP,),
}


class InteractionListGenerator:
    def __init__(self, channel: str, include_cc: bool = True, include_nc: bool = True):
        if channel not in CHANNELS:
            raise ValueError(f"Unknown channel '{channel}'")
        self.channel = channel
        self.include_cc = include_cc
        self.include_nc = include_nc

    def _hit_nucleons(self, target: Target) -> List[int]:
        hits = []
        if target.Z > 0:
            hits.append(pdglib.PDG_PROTON)
        if target.N > 0:
            hits.append(pdglib.PDG_NEUTRON)
        return hits

    def create(self, probe_pdg: int, energy: float, target: Target) -> List[Interaction]:
        if not (pdglib.is_neutrino(probe_pdg) or pdglib.is_anti_neutrino(probe_pdg)):
            raise ValueError(f"Probe {probe_pdg} is not a neutrino")

        target = Target(target.Z, target.A)
        hits = self._hit_nucleons(target)
        out: List[Interaction] = []

        if self.channel == "QEL":
            for hit in hits:
                if self.include_cc:
                    # nu n -> l- p, nu_bar p -> l+ n
                    wanted = pdglib.PDG_NEUTRON if probe_pdg > 0 else pdglib.PDG_PROTON
                    if hit == wanted:
                        out.append(Interaction.qel_cc(target, hit, probe_pdg, energy))
                if self.include_nc:
                    out.append(Interaction.qel_nc(target, hit, probe_pdg, energy))

        elif self.channel == "QEL_CHARM":
            if self.include_cc and probe_pdg > 0:
                for hit in hits:
                    for charm in QEL_CHARM_BARYONS[hit]:
                        out.append(Interaction.qel_charm_cc(target, hit, probe_pdg, energy, charm))

        elif self.channel == "DIS":
            for hit in hits:
                if self.include_cc:
                    out.append(Interaction.dis_cc(target, hit, probe_pdg, energy))
                if self.include_nc:
                    out.append(Interaction.dis_nc(target, hit, probe_pdg, energy))

        elif self.channel == "DIS_CHARM":
            if self.include_cc and probe_pdg > 0:
                for hit in hits:
                    out.append(Interaction.charm_dis_cc(target, hit, probe_pdg, energy))

        elif self.channel == "RES":
            for hit in hits:
                if self.include_cc:
                    out.append(Interaction.res_cc(target, hit, probe_pdg, energy))
                if self.include_nc:
                    out.append(Interaction.res_nc(target, hit, probe_pdg, energy))

        elif self.channel == "COH":
            if target.is_nucleus:
                if self.include_cc:
                    out.append(Interaction.coh_cc(target, probe_pdg, energy))
                if self.include_nc:
                    out.append(Interaction.coh_nc(target, probe_pdg, energy))

        elif self.channel == "MEC":
            if self.include_cc and target.is_nucleus and target.Z > 0 and target.N > 0:
                out.append(Interaction.mec_cc(target, probe_pdg, energy, pdglib.PDG_CLUSTER_NP))

        return out
