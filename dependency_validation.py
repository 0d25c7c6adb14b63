"""
Dependency validation for Hymn Mod Manager.

Mods declare required and optional dependencies by id (``Group:Name`` or a
bare ``Name``).  Ids are compared as opaque strings; version constraints in
the manifest are not evaluated.

Only enabled mods are checked.  A disabled mod's unmet dependencies do not
matter until it is turned on.

Public API
----------
validate_mod_dependencies(entries) -> ValidationResult
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterable, Literal

if TYPE_CHECKING:
    from mod_scanner import ModEntry

IssueType = Literal["missing_dependency", "disabled_dependency", "optional_missing"]

ERROR_TYPES = {"missing_dependency", "disabled_dependency"}
WARNING_TYPES = {"optional_missing"}


@dataclass
class DependencyIssue:
    mod_id: str
    mod_name: str
    type: IssueType
    dependency_id: str
    message: str


@dataclass
class ValidationResult:
    issues: list[DependencyIssue] = field(default_factory=list)
    has_errors: bool = False
    has_warnings: bool = False

    def issues_for(self, mod_id: str) -> list[DependencyIssue]:
        return [issue for issue in self.issues if issue.mod_id == mod_id]


def validate_mod_dependencies(entries: Iterable[ModEntry]) -> ValidationResult:
    """Classify unmet dependencies of every enabled entry.

    ``missing_dependency``   required id not installed at all
    ``disabled_dependency``  required id installed but disabled
    ``optional_missing``     optional id not installed (informational)

    The result never blocks anything by itself; callers choose whether to
    surface errors or carry on.
    """
    entries = list(entries)
    installed = {entry.id: entry for entry in entries}
    issues: list[DependencyIssue] = []

    for entry in entries:
        if not entry.enabled:
            continue

        for dep_id in entry.dependencies:
            dep = installed.get(dep_id)
            if dep is None:
                issues.append(
                    DependencyIssue(
                        mod_id=entry.id,
                        mod_name=entry.name,
                        type="missing_dependency",
                        dependency_id=dep_id,
                        message=f'Required dependency "{dep_id}" is not installed',
                    )
                )
            elif not dep.enabled:
                issues.append(
                    DependencyIssue(
                        mod_id=entry.id,
                        mod_name=entry.name,
                        type="disabled_dependency",
                        dependency_id=dep_id,
                        message=f'Required dependency "{dep_id}" is disabled',
                    )
                )

        for dep_id in entry.optional_dependencies:
            if dep_id not in installed:
                issues.append(
                    DependencyIssue(
                        mod_id=entry.id,
                        mod_name=entry.name,
                        type="optional_missing",
                        dependency_id=dep_id,
                        message=f'Optional dependency "{dep_id}" is not installed',
                    )
                )

    return ValidationResult(
        issues=issues,
        has_errors=any(issue.type in ERROR_TYPES for issue in issues),
        has_warnings=any(issue.type in WARNING_TYPES for issue in issues),
    )
