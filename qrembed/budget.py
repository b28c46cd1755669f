"""Error-correction budget estimate for a centred logo.

Used to check the LOGO_FRACTION constant against what a symbol can actually
recover. The estimate is conservative: every module under the logo box counts
as destroyed, and destroyed modules are assumed to spread evenly over the
Reed-Solomon blocks.
"""

import math
from dataclasses import dataclass

from qrcode.base import rs_blocks

from qrembed.compose import LOGO_FRACTION
from qrembed.generator import ECC_NAMES
from qrembed.logging import audit, get_logger, trace

log = get_logger("budget")

# Leave headroom for print/scan noise on top of the logo damage.
SAFE_BUDGET_FRACTION = 0.95


@dataclass
class ECCBudget:
    """How much of a symbol's correction capacity a centred logo consumes."""

    version: int
    ecc: str
    total_codewords: int
    data_codewords: int
    ecc_codewords: int
    correctable_codewords: int
    correctable_modules: int
    logo_modules: int
    budget_used_pct: float
    safe: bool

    def summary(self) -> str:
        size = self.version * 4 + 17
        return (
            f"ECC Budget (V{self.version}-{self.ecc}):\n"
            f"  Grid: {size}x{size} = {size * size} modules\n"
            f"  Codewords: {self.total_codewords} "
            f"({self.data_codewords} data + {self.ecc_codewords} ECC)\n"
            f"  ECC can correct: {self.correctable_codewords} codewords "
            f"= ~{self.correctable_modules} modules\n"
            f"  Logo covers: ~{self.logo_modules} modules "
            f"({self.budget_used_pct:.1f}% of budget)\n"
            f"  Status: {'SAFE' if self.safe else 'OVER BUDGET'}"
        )


def logo_modules_covered(version: int, margin: int, fraction: float = LOGO_FRACTION) -> int:
    """Upper bound on symbol modules touched by a centred logo box."""
    size = version * 4 + 17
    span = fraction * (size + 2 * margin)
    # a box that is not module-aligned can touch one extra row and column
    side = min(size, math.ceil(span) + 1)
    return side * side


@trace
def estimate_logo_budget(
    version: int,
    ecc: str = "H",
    fraction: float = LOGO_FRACTION,
    margin: int = 4,
) -> ECCBudget:
    """Compare the modules a centred logo covers with what *ecc* can correct."""
    if not 1 <= version <= 40:
        raise ValueError("version must be within 1-40")
    level = ECC_NAMES[ecc.upper()].value

    blocks = rs_blocks(version, level)
    total_cw = sum(b.total_count for b in blocks)
    data_cw = sum(b.data_count for b in blocks)
    # Reed-Solomon corrects up to floor(ecc / 2) codewords per block
    correctable_cw = sum((b.total_count - b.data_count) // 2 for b in blocks)
    correctable_modules = correctable_cw * 8

    covered = logo_modules_covered(version, margin, fraction)
    used = covered / correctable_modules if correctable_modules else 1.0

    budget = ECCBudget(
        version=version,
        ecc=ecc.upper(),
        total_codewords=total_cw,
        data_codewords=data_cw,
        ecc_codewords=total_cw - data_cw,
        correctable_codewords=correctable_cw,
        correctable_modules=correctable_modules,
        logo_modules=covered,
        budget_used_pct=used * 100,
        safe=used < SAFE_BUDGET_FRACTION,
    )
    audit("ecc.budget", logger=log,
          version=version, ecc=budget.ecc,
          correctable=correctable_modules, covered=covered,
          budget_pct=f"{used:.1%}", safe=budget.safe)
    return budget
