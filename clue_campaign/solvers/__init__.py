# Card-symbol setup solving (forward DVD protocol + inverse CSP lookup)
from .symbol_setup_solver import SymbolSetupSolver, DvdSetup, SetupInstruction, SymbolMatch
