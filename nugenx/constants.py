"""
Physical constants for NuGenX.

Units: GeV (natural units c = 1), lengths in fm.
"""

# -----------------------------
# Couplings & conversions
# -----------------------------
FERMI_CONSTANT = 1.1663787e-5        # GeV^-2
COS_CABIBBO = 0.97425
HBARC = 0.1973269804                 # GeV fm
GEV2_TO_CM2 = 0.389379e-27           # 1 GeV^-2 in cm^2
GEV2_TO_1E38_CM2 = GEV2_TO_CM2 / 1e-38
MB_TO_FM2 = 0.1

# -----------------------------
# Masses (GeV)
# -----------------------------
ELECTRON_MASS = 0.000510999
MUON_MASS = 0.1056584
TAU_MASS = 1.77686
PROTON_MASS = 0.9382720
NEUTRON_MASS = 0.9395654
NUCLEON_MASS = 0.5 * (PROTON_MASS + NEUTRON_MASS)
CHARGED_PION_MASS = 0.1395704
NEUTRAL_PION_MASS = 0.1349768
DELTA_MASS = 1.232
DELTA_WIDTH = 0.117

# -----------------------------
# Nucleon form factors
# -----------------------------
VECTOR_MASS = 0.840                  # GeV, dipole vector mass
AXIAL_MASS = 0.990                   # GeV, dipole axial mass
AXIAL_COUPLING = 1.2670              # |gA|
PROTON_MAGNETIC_MOMENT = 2.7928
NEUTRON_MAGNETIC_MOMENT = -1.9130

# -----------------------------
# Nuclear geometry (fm)
# -----------------------------
NUCLEAR_R0 = 1.4
WOODS_SAXON_DIFFUSENESS = 0.55
FORMATION_ZONE_CT0 = 0.342

# Numerical guards
SMALL_NUMBER = 1e-6
TINY_NUMBER = 1e-12
