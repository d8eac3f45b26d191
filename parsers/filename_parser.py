"""
Filename key extraction for supplier product photos.

Derives {reference, variant, sequence, category} from a raw filename by
trying an ordered list of independent strategies, most specific first.
The first strategy that fully matches wins; there is no partial credit.

Examples (Emile et Ida profile):
    "AD207B-lizeron-1.jpg"                       -> AD207B / lizeron / 1 / product
    "AD015-creme-BB-01.jpg"                      -> AD015 / creme / 1 / product
    "EMILE IDA E26 AD019 AD009 creme (1).jpg"    -> AD019+AD009 / creme / 1 / shared
"""

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Iterable, Optional
import structlog

from config.supplier_profiles import SupplierProfile
from models.catalog import Asset, AssetCategory

logger = structlog.get_logger(__name__)

IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")

_EXTENSION = re.compile(r"\.[A-Za-z0-9]{2,5}$")
_PAREN_SEQUENCE = re.compile(r"\((\d+)")
_TRAILING_PAREN = re.compile(r"\s*\(\d+°?\)?\s*$")


@dataclass(frozen=True)
class FilenameKey:
    """Structured key extracted from one filename."""
    reference_code: str
    variant_token: str
    sequence_number: int
    category: AssetCategory
    reference_tokens: tuple[str, ...] = ()
    strategy: str = ""

    def __post_init__(self):
        if not self.reference_tokens:
            object.__setattr__(self, "reference_tokens", (self.reference_code,))


def basename(filename: str) -> str:
    """Drop any directory part (browser folder uploads send relative paths)."""
    return PurePosixPath(filename.replace("\\", "/")).name


def strip_extension(filename: str) -> str:
    return _EXTENSION.sub("", filename)


def is_image_filename(filename: str) -> bool:
    return filename.lower().endswith(IMAGE_EXTENSIONS)


# ===================
# STRATEGIES
# ===================

class KeyStrategy:
    """One filename layout. Returns None when the stem does not fit it."""

    name = ""

    def __init__(self, profile: SupplierProfile):
        self.profile = profile
        self._reference = re.compile(profile.reference_pattern, re.IGNORECASE)

    def is_reference(self, token: str) -> bool:
        return bool(token) and self._reference.fullmatch(token) is not None

    def extract(self, stem: str) -> Optional[FilenameKey]:
        raise NotImplementedError


class HashPrefixedStrategy(KeyStrategy):
    """`{id}_{hash}-{REF}-{VARIANT}-{SEQ}-{suffix}`, e.g. 18397_01bd66254b-11000335-75-1-original"""

    name = "hash_prefixed"
    PATTERN = re.compile(
        r"^\d+_[0-9a-f]+-(?P<ref>[^-\s]+)-(?P<variant>[^-\s]+)-(?P<seq>\d+)-[a-z]+$",
        re.IGNORECASE,
    )

    def extract(self, stem: str) -> Optional[FilenameKey]:
        match = self.PATTERN.match(stem)
        if not match or not self.is_reference(match.group("ref")):
            return None
        return FilenameKey(
            reference_code=match.group("ref").upper(),
            variant_token=match.group("variant").lower(),
            sequence_number=int(match.group("seq")),
            category=AssetCategory.PRODUCT,
            strategy=self.name,
        )


class HashSuffixedStrategy(KeyStrategy):
    """`{REF}-{VARIANT}-{SEQ}-{hash}`, e.g. s26ahb1p362-pink_lavander_bow-1-3dc260"""

    name = "hash_suffixed"
    PATTERN = re.compile(
        r"^(?P<ref>[^-\s]+)-(?P<variant>.+?)-(?P<seq>\d+)-[0-9a-f]{4,}$",
        re.IGNORECASE,
    )

    def extract(self, stem: str) -> Optional[FilenameKey]:
        match = self.PATTERN.match(stem)
        if not match or not self.is_reference(match.group("ref")):
            return None
        return FilenameKey(
            reference_code=match.group("ref").upper(),
            variant_token=match.group("variant").lower(),
            sequence_number=int(match.group("seq")),
            category=AssetCategory.PRODUCT,
            strategy=self.name,
        )


class HyphenatedStrategy(KeyStrategy):
    """
    `{REF}-{variant}[-{marker}][-{SEQ}][-{marker}]`, e.g. AD015-creme-BB-01.

    Batch/size markers are skipped, never read as the sequence number.
    A trailing "(n)" also counts as the sequence.
    """

    name = "hyphenated"

    def __init__(self, profile: SupplierProfile):
        super().__init__(profile)
        markers = "|".join(re.escape(m) for m in profile.batch_markers)
        marker = f"(?:-(?:{markers}))*" if markers else ""
        self._pattern = re.compile(
            rf"^(?P<ref>[^-\s]+)-(?P<variant>[^-].*?){marker}"
            rf"(?:-(?P<seq>\d+))?{marker}"
            rf"(?:\s*\((?P<paren>\d+)°?\)?)?$",
            re.IGNORECASE,
        )

    def extract(self, stem: str) -> Optional[FilenameKey]:
        match = self._pattern.match(stem.strip())
        if not match or not self.is_reference(match.group("ref")):
            return None

        variant = match.group("variant").strip(" -_").lower()
        if not variant:
            return None

        sequence = match.group("seq") or match.group("paren") or "0"
        return FilenameKey(
            reference_code=match.group("ref").upper(),
            variant_token=variant,
            sequence_number=int(sequence),
            category=AssetCategory.PRODUCT,
            strategy=self.name,
        )


class SpaceSeparatedStrategy(KeyStrategy):
    """
    Whitespace-tokenized names, possibly naming several references.

    A leading shared marker (e.g. "EMILE") tags the photo as shared
    lifestyle photography; otherwise it is a plain product photo.
    """

    name = "space_separated"

    def extract(self, stem: str) -> Optional[FilenameKey]:
        paren = _PAREN_SEQUENCE.search(stem)
        tokens = _TRAILING_PAREN.sub("", stem).split()
        sequence = int(paren.group(1)) if paren else 0
        # "AD015 creme 2": bare trailing numeral is the sequence
        if not paren and len(tokens) > 2 and tokens[-1].isdigit() and not self.is_reference(tokens[-1]):
            sequence = int(tokens.pop())
        if len(tokens) < 2:
            return None

        references: list[str] = []
        variants: list[str] = []
        rest: list[str] = []
        for token in tokens:
            upper = token.upper()
            if upper in self.profile.noise_tokens:
                continue
            if self.is_reference(token):
                if upper not in references:
                    references.append(upper)
            elif token.lower() in self.profile.known_variants:
                variants.append(token.lower())
            else:
                rest.append(token.lower())

        if not references:
            return None

        if variants:
            variant = variants[0]
        elif not self.profile.known_variants:
            variant = " ".join(rest)
        else:
            variant = ""

        shared = tokens[0].upper() in self.profile.shared_markers
        return FilenameKey(
            reference_code=references[0],
            variant_token=variant,
            sequence_number=sequence,
            category=AssetCategory.SHARED if shared else AssetCategory.PRODUCT,
            reference_tokens=tuple(references),
            strategy=self.name,
        )


STRATEGIES: dict[str, type[KeyStrategy]] = {
    HashPrefixedStrategy.name: HashPrefixedStrategy,
    HashSuffixedStrategy.name: HashSuffixedStrategy,
    HyphenatedStrategy.name: HyphenatedStrategy,
    SpaceSeparatedStrategy.name: SpaceSeparatedStrategy,
}


# ===================
# EXTRACTOR
# ===================

class FilenameKeyExtractor:
    """Runs a supplier's strategy chain over filenames."""

    def __init__(self, profile: SupplierProfile):
        self.profile = profile
        self.strategies = [STRATEGIES[name](profile) for name in profile.strategies]

    def extract(self, filename: str) -> Optional[FilenameKey]:
        """
        Extract a key from a filename.

        Args:
            filename: Raw filename, optionally with a directory part

        Returns:
            FilenameKey from the first matching strategy, or None if unparseable
        """
        stem = strip_extension(basename(filename).strip())
        for strategy in self.strategies:
            key = strategy.extract(stem)
            if key is not None:
                return key
        return None

    def build_asset(self, filename: str, payload: bytes = b"") -> Asset:
        """
        Build an Asset, tagging its category once.

        Unparseable names become product assets without a reference;
        they can only end up in the unmatched pool.
        """
        name = basename(filename)
        key = self.extract(name)
        if key is None:
            logger.debug("filename_unparseable", filename=name, supplier=self.profile.name)
            return Asset(filename=name, payload=payload)

        return Asset(
            filename=name,
            payload=payload,
            reference_code=key.reference_code,
            reference_tokens=key.reference_tokens,
            variant_token=key.variant_token,
            sequence_number=key.sequence_number,
            category=key.category,
        )

    def build_assets(self, files: Iterable[tuple[str, bytes]]) -> list[Asset]:
        """
        Build assets from (filename, payload) pairs.

        Non-image files are skipped. Duplicate filenames keep the first copy.
        """
        assets: list[Asset] = []
        seen: set[str] = set()
        skipped = 0

        for filename, payload in files:
            name = basename(filename)
            if not is_image_filename(name) or name in seen:
                skipped += 1
                continue
            seen.add(name)
            assets.append(self.build_asset(name, payload))

        logger.info(
            "assets_extracted",
            supplier=self.profile.name,
            count=len(assets),
            unparsed=sum(1 for a in assets if not a.parsed),
            shared=sum(1 for a in assets if a.is_shared),
            skipped=skipped,
        )
        return assets
