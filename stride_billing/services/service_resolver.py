"""
Service Resolver.

Finds the single catalog entry that prices a charge context using a
three-tier fallback, evaluated in order:
1. Active entry for the key with the requested class
2. Active flat entry (no class) for the key
3. Any active entry for the key

Ties within a tier go to the first entry in catalog order. Pure: no I/O and
no state, safe to share between threads.
"""
import logging
from collections import defaultdict
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from stride_billing.core.errors import NoMatchingServiceError
from stride_billing.schemas.charge import ChargeContext
from stride_billing.schemas.service_catalog import ServiceEntry

logger = logging.getLogger(__name__)


class ServiceResolver:
    """Resolve charge contexts against a catalog snapshot."""

    def resolve(self, context: ChargeContext, catalog: Iterable[ServiceEntry]) -> ServiceEntry:
        """
        Return the entry that prices ``context``.

        Args:
            context: category or explicit service code, plus optional class
            catalog: tenant catalog in catalog order

        Raises:
            NoMatchingServiceError: no active entry for the key at any tier
        """
        candidates = [
            entry for entry in catalog
            if entry.is_active and self._key_of(entry, context) == context.lookup_key
        ]

        tiers: List[Tuple[str, Callable[[ServiceEntry], bool]]] = []
        if context.class_code is not None:
            tiers.append(("class", lambda e: e.class_code == context.class_code))
        tiers.append(("flat", lambda e: e.class_code is None))
        tiers.append(("any", lambda e: True))

        for tier_name, predicate in tiers:
            matches = [entry for entry in candidates if predicate(entry)]
            if matches:
                if len(matches) > 1 and tier_name != "any":
                    logger.warning(
                        f"Ambiguous catalog for '{context.lookup_key}' "
                        f"(class={context.class_code}): "
                        f"{[m.service_code for m in matches]} tie at tier '{tier_name}', "
                        f"using {matches[0].service_code}"
                    )
                return matches[0]

        raise NoMatchingServiceError(
            f"No active service configured for '{context.lookup_key}'"
            + (f" (class {context.class_code.value})" if context.class_code else ""),
            details={
                "category": context.category,
                "service_code": context.service_code,
                "class_code": context.class_code.value if context.class_code else None,
            },
        )

    def try_resolve(self, context: ChargeContext, catalog: Sequence[ServiceEntry]) -> Optional[ServiceEntry]:
        """Like resolve(), but None when nothing matches."""
        try:
            return self.resolve(context, catalog)
        except NoMatchingServiceError:
            return None

    @staticmethod
    def _key_of(entry: ServiceEntry, context: ChargeContext) -> str:
        return entry.service_code if context.keyed_on_service_code else entry.category

    # =========================================================================
    # CATALOG AUDIT
    # =========================================================================

    @staticmethod
    def find_scope_conflicts(catalog: Iterable[ServiceEntry]) -> Dict[Tuple[str, Optional[str]], List[str]]:
        """
        Active entries sharing a (category, class_code) scope.

        Returns:
            Mapping of scope to the conflicting service codes, in catalog order
        """
        scopes: Dict[Tuple[str, Optional[str]], List[str]] = defaultdict(list)
        for entry in catalog:
            if not entry.is_active:
                continue
            class_code = entry.class_code.value if entry.class_code else None
            scopes[(entry.category, class_code)].append(entry.service_code)
        return {scope: codes for scope, codes in scopes.items() if len(codes) > 1}


resolver = ServiceResolver()
