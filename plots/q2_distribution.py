import argparse

import numpy as np
import matplotlib.pyplot as plt

from nugenx.config import build_default_registry
from nugenx.events import EventDB
from nugenx.evg.kinematics_generators import QELKinematicsGenerator
from nugenx.interaction import Interaction, Target
from nugenx.particles import PDG_NEUTRON, PDG_NUMU


def qel_dsigma_dq2(energy, n_points=200):
    """dsigma/dQ2 of nu_mu n -> mu- p on a grid spanning the allowed Q2 range."""
    registry = build_default_registry()
    generator = QELKinematicsGenerator(registry.get("QELKinematicsGenerator"))
    interaction = Interaction.qel_cc(Target.free_nucleon(PDG_NEUTRON), PDG_NEUTRON, PDG_NUMU, energy)
    box = generator.allowed_box(interaction)
    if box is None:
        return np.array([]), np.array([])
    grid = np.linspace(box[0].min, box[0].max, n_points)
    values = np.array([generator.evaluate(interaction, [q2]) for q2 in grid])
    return grid, values


def main():
    parser = argparse.ArgumentParser(description="Q2 distribution of stored QEL events")
    parser.add_argument("--energy", type=float, default=1.0, help="Probe energy used for the overlay (GeV)")
    parser.add_argument("--channel", default="QEL")
    args = parser.parse_args()

    q2 = np.array(EventDB().q2_values(args.channel), dtype=float)
    if q2.size == 0:
        print(f"No {args.channel} events with Q2 in the database.")
        return

    plt.figure(figsize=(7, 5))
    plt.hist(q2, bins=60, density=True, alpha=0.8, label=f'NuGenX ({args.channel})')

    if args.channel == "QEL":
        grid, y = qel_dsigma_dq2(args.energy)
        if grid.size and np.trapezoid(y, grid) > 0:
            y = y / np.trapezoid(y, grid)
            plt.plot(grid, y, 'r--', label=r'$d\sigma/dQ^2$ (normalized)')

    plt.xlabel(r'$Q^2$ [GeV$^2$]')
    plt.ylabel('Normalized counts / PDF')
    plt.title(rf'$Q^2$ distribution, {args.channel}')
    plt.grid(alpha=0.3)
    plt.legend()
    plt.tight_layout()
    plt.show()


if __name__ == "__main__":
    main()
