# main.py
import logging

import numpy as np

from nugenx.conservation import check_record_conservation
from nugenx.event_generator import EventGenerator
from nugenx.interaction import Interaction, Target
from nugenx.particles import PDG_NEUTRON, PDG_NUMU

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

generator = EventGenerator(channels=["QEL"])

# nu_mu n -> mu- p at 1 GeV on a free neutron
interaction = Interaction.qel_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, 1.0)
outcome = generator.generate(interaction, np.random.default_rng(42))

if outcome.ok:
    print(outcome.record.summary())
    check = check_record_conservation(outcome.record)
    print(f"deltaE = {check['deltaE']:.2e}, conserved = {check['conserved']}")
else:
    print(f"Event aborted after {outcome.attempts} attempts: {outcome.reason}")
