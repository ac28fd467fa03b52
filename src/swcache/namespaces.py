"""Versioned cache namespace naming.

A namespace name is derived from a semantic :class:`~swcache.models.NamespaceKind`
and the running build version, so that a redeploy automatically starts
writing to fresh namespaces while the previous version's namespaces become
orphaned.  Naming is a pure function; nothing here touches the store.
"""

from __future__ import annotations

from typing import Iterable

from swcache.models import CacheNamespace, NamespaceKind

APP_SHELL_NAMESPACE = "app"
"""Fixed name of the app-shell namespace.

Build artifacts are content-addressed by filename, so their namespace is
shared across versions.
"""


def namespace_name(kind: NamespaceKind, build_version: str) -> str:
    """Return the namespace name for *kind* under *build_version*.

    Args:
        kind: Semantic kind of the namespace.
        build_version: Opaque build version string, used verbatim.

    Returns:
        ``"<kind>-v<build_version>"``, or :data:`APP_SHELL_NAMESPACE` for the
        app-shell kind.

    Example::

        >>> namespace_name(NamespaceKind.SITE, "1.2.3")
        'site-v1.2.3'
    """
    kind = NamespaceKind(kind)
    if kind is NamespaceKind.APP_SHELL:
        return APP_SHELL_NAMESPACE
    return f"{kind.value}-v{build_version}"


class NamespaceRegistry:
    """Resolves namespace kinds to :class:`~swcache.models.CacheNamespace` values for one build.

    Args:
        build_version: The running build version.
    """

    def __init__(self, build_version: str) -> None:
        self._build_version = build_version

    @property
    def build_version(self) -> str:
        return self._build_version

    def resolve(self, kind: NamespaceKind) -> CacheNamespace:
        """Return the active namespace for *kind*."""
        kind = NamespaceKind(kind)
        return CacheNamespace(
            kind=kind,
            version=self._build_version,
            name=namespace_name(kind, self._build_version),
        )

    def active_names(self) -> set[str]:
        """Names of every namespace the current build reads from or writes to."""
        return {namespace_name(kind, self._build_version) for kind in NamespaceKind}

    def orphaned(self, existing: Iterable[str]) -> list[str]:
        """Return the names in *existing* that the current build no longer uses.

        Args:
            existing: Namespace names found in the store.

        Returns:
            Sorted list of orphaned names.
        """
        active = self.active_names()
        return sorted(name for name in existing if name not in active)
