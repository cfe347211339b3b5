"""
Version override data model for frida-mgr.

Overrides record corrections learned by the installation layer when the
version map's prediction turned out not to install. Two namespaces exist:

- ``frida_tools``: anchor version → tools version
- ``objection``: ``"<anchor>@<MAJOR.MINOR>"`` → objection version

Both are addressed through tagged keys (:class:`ToolsKey`,
:class:`ObjectionKey`) so callers share one ``get`` / ``set`` interface.
Persistence lives in :mod:`fridamgr.core.store`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Union

from fridamgr.exceptions import ParseError
from fridamgr.utils.version_utils import python_tag


@dataclass(frozen=True)
class ToolsKey:
    """Override key for the ``frida-tools`` paired with an anchor version."""

    frida_version: str

    @property
    def storage_key(self) -> str:
        return self.frida_version


@dataclass(frozen=True)
class ObjectionKey:
    """Override key for the ``objection`` paired with an anchor and interpreter.

    The interpreter version is reduced to ``MAJOR.MINOR``; anything that does
    not parse maps to the ``unknown`` sentinel.
    """

    frida_version: str
    python_version: str

    @property
    def storage_key(self) -> str:
        return f"{self.frida_version}@{python_tag(self.python_version)}"


OverrideKey = Union[ToolsKey, ObjectionKey]


def _string_table(data: Any, table: str) -> Dict[str, str]:
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ParseError(f"[{table}] must be a table", source="version-overrides")

    out: Dict[str, str] = {}
    for key, value in data.items():
        if not isinstance(value, str):
            raise ParseError(
                f"[{table}] entry {key!r} must be a string",
                source="version-overrides",
                record=repr(value),
            )
        out[str(key)] = value
    return out


@dataclass
class VersionOverrides:
    """Learned version corrections.

    Attributes:
        frida_tools: Anchor version → tools version.
        objection: ``"<anchor>@<MAJOR.MINOR>"`` → objection version.
    """

    frida_tools: Dict[str, str] = field(default_factory=dict)
    objection: Dict[str, str] = field(default_factory=dict)

    def _table(self, key: OverrideKey) -> Dict[str, str]:
        if isinstance(key, ToolsKey):
            return self.frida_tools
        return self.objection

    def get(self, key: OverrideKey) -> Optional[str]:
        """Return the override stored under ``key``, if any."""
        return self._table(key).get(key.storage_key)

    def set(self, key: OverrideKey, value: str) -> bool:
        """Store ``value`` under ``key``.

        Returns:
            ``True`` if the stored value changed, ``False`` when it already
            equalled ``value`` (no-op).
        """
        table = self._table(key)
        storage_key = key.storage_key
        if table.get(storage_key) == value:
            return False
        table[storage_key] = value
        return True

    # Convenience wrappers

    def get_tools(self, frida_version: str) -> Optional[str]:
        return self.get(ToolsKey(frida_version))

    def get_objection(self, frida_version: str, python_version: str) -> Optional[str]:
        return self.get(ObjectionKey(frida_version, python_version))

    def set_tools(self, frida_version: str, tools_version: str) -> bool:
        return self.set(ToolsKey(frida_version), tools_version)

    def set_objection(
        self,
        frida_version: str,
        python_version: str,
        objection_version: str,
    ) -> bool:
        return self.set(ObjectionKey(frida_version, python_version), objection_version)

    def is_empty(self) -> bool:
        return not self.frida_tools and not self.objection

    # Serialization

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        """Return the TOML document shape, keys sorted."""
        return {
            "frida_tools": dict(sorted(self.frida_tools.items())),
            "objection": dict(sorted(self.objection.items())),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "VersionOverrides":
        """Build from a parsed TOML document; missing tables are empty.

        Raises:
            ParseError: A table or value has the wrong type.
        """
        return cls(
            frida_tools=_string_table(data.get("frida_tools"), "frida_tools"),
            objection=_string_table(data.get("objection"), "objection"),
        )
