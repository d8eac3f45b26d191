"""
Variant/color token normalization for fuzzy equality.

"Vichy Rouge", "vichy-rouge" and "VICHY" all normalize to "vichy";
"guariguette" and "gariguette" share one canonical spelling through the
supplier's alias table.
"""

from typing import Optional

from config.supplier_profiles import SupplierProfile
from utils.text_utils import fold_text, strip_separators


class KeyNormalizer:
    """
    Normalizes variant tokens using one supplier's qualifiers and aliases.

    Pure: no state beyond the profile it was built from.
    """

    def __init__(self, profile: SupplierProfile):
        self.qualifiers = tuple(strip_separators(fold_text(q)) for q in profile.variant_qualifiers)
        self.aliases = {
            strip_separators(fold_text(k)): strip_separators(fold_text(v))
            for k, v in profile.variant_aliases.items()
        }

    def normalize(self, token: Optional[str]) -> str:
        """
        Canonical form of a variant token.

        Lowercase, accent-free, separators removed, trailing catalog-only
        qualifiers dropped (only when something is left), aliases applied.
        """
        value = strip_separators(fold_text(token))

        for qualifier in self.qualifiers:
            if qualifier and value.endswith(qualifier) and len(value) > len(qualifier):
                value = value[: -len(qualifier)]

        return self.aliases.get(value, value)

    def equals(self, a: Optional[str], b: Optional[str]) -> bool:
        """
        Fuzzy variant equality.

        True when both normalize to the same string, or one normalized
        form contains the other. An empty form only equals another empty form.
        """
        left = self.normalize(a)
        right = self.normalize(b)

        if left == right:
            return True
        if not left or not right:
            return False
        return left in right or right in left
