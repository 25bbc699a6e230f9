"""Local AMM math used for display estimates."""

from cpmm.amm.constant_product import ConstantProduct

__all__ = ["ConstantProduct"]
