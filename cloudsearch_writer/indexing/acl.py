"""Access control for indexed items."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Iterable, List, Optional, Protocol

from cloudsearch_writer.core.config import SdkConfiguration
from cloudsearch_writer.core.exceptions import ConfigurationError
from cloudsearch_writer.models.item import GSuitePrincipal, Item, ItemAcl, Principal, customer_principal

logger = logging.getLogger(__name__)

GOOGLE_PRINCIPAL_PREFIX = "google:"


class DefaultAclMode(str, Enum):
    NONE = "none"
    FALLBACK = "fallback"
    APPEND = "append"
    OVERRIDE = "override"


class AclPolicy(Protocol):
    def apply_to_if_enabled(self, item: Item) -> bool: ...


def _user_principal(name: str, identity_source_id: Optional[str]) -> Principal:
    if name.startswith(GOOGLE_PRINCIPAL_PREFIX):
        return Principal(gsuite_principal=GSuitePrincipal(gsuite_user_email=name[len(GOOGLE_PRINCIPAL_PREFIX):]))
    if not identity_source_id:
        raise ConfigurationError(f"api.identitySourceId is required for non-Google user principal '{name}'")
    return Principal(user_resource_name=f"identitysources/{identity_source_id}/users/{name}")


def _group_principal(name: str, identity_source_id: Optional[str]) -> Principal:
    if name.startswith(GOOGLE_PRINCIPAL_PREFIX):
        return Principal(gsuite_principal=GSuitePrincipal(gsuite_group_email=name[len(GOOGLE_PRINCIPAL_PREFIX):]))
    if not identity_source_id:
        raise ConfigurationError(f"api.identitySourceId is required for non-Google group principal '{name}'")
    return Principal(group_resource_name=f"identitysources/{identity_source_id}/groups/{name}")


def _principals(users: Iterable[str], groups: Iterable[str], identity_source_id: Optional[str]) -> List[Principal]:
    principals = [_user_principal(name, identity_source_id) for name in users]
    principals.extend(_group_principal(name, identity_source_id) for name in groups)
    return principals


class DefaultAcl:
    """Connector wide ACL applied to items according to ``defaultAcl.mode``."""

    def __init__(
        self,
        mode: DefaultAclMode = DefaultAclMode.NONE,
        readers: Optional[List[Principal]] = None,
        denied_readers: Optional[List[Principal]] = None,
    ) -> None:
        self.mode = mode
        self.readers = list(readers or [])
        self.denied_readers = list(denied_readers or [])
        if self.mode is not DefaultAclMode.NONE and not self.readers:
            raise ConfigurationError(
                f"defaultAcl.mode={self.mode.value} requires defaultAcl.public=true or at least one reader"
            )

    @classmethod
    def from_configuration(cls, config: SdkConfiguration) -> "DefaultAcl":
        mode = DefaultAclMode(config.default_acl_mode)
        if mode is DefaultAclMode.NONE:
            return cls(mode)

        if config.default_acl_public:
            readers = [customer_principal()]
        else:
            readers = _principals(
                config.default_acl_reader_users,
                config.default_acl_reader_groups,
                config.identity_source_id,
            )
        denied = _principals(
            config.default_acl_denied_users,
            config.default_acl_denied_groups,
            config.identity_source_id,
        )
        logger.info("Default ACL mode %s with %d readers and %d denied readers", mode.value, len(readers), len(denied))
        return cls(mode, readers, denied)

    def apply_to_if_enabled(self, item: Item) -> bool:
        """Apply the default ACL to ``item``; returns whether the item's ACL was set."""

        if self.mode is DefaultAclMode.NONE:
            return False

        existing = item.acl
        if self.mode is DefaultAclMode.FALLBACK:
            if existing is not None and existing.readers:
                return False
            item.acl = self._fresh_acl()
        elif self.mode is DefaultAclMode.APPEND:
            acl = existing.model_copy(deep=True) if existing is not None else ItemAcl()
            acl.readers.extend(reader for reader in self.readers if reader not in acl.readers)
            acl.denied_readers.extend(denied for denied in self.denied_readers if denied not in acl.denied_readers)
            item.acl = acl
        else:
            item.acl = self._fresh_acl()
        return True

    def _fresh_acl(self) -> ItemAcl:
        return ItemAcl(
            readers=[reader.model_copy(deep=True) for reader in self.readers],
            denied_readers=[denied.model_copy(deep=True) for denied in self.denied_readers],
        )


class AclResolver:
    """Apply the default ACL, granting the customer's whole domain when it does not apply."""

    def __init__(self, policy: AclPolicy) -> None:
        self.policy = policy

    def apply(self, item: Item) -> Item:
        if not self.policy.apply_to_if_enabled(item):
            item.acl = ItemAcl(readers=[customer_principal()])
        return item
