"""Common issue tracker mixin for the pattern store.

Common issues are lightweight occurrence tallies keyed by signature. They are
independent of resolution patterns: nothing links the two, and deleting or
pruning a pattern leaves every issue untouched.
"""

from collections.abc import Callable
from contextlib import AbstractContextManager
from datetime import datetime

from mender.core.errors import IssueNotFoundError
from mender.core.logging import MenderLogger
from mender.store.models import CommonIssue, StoreDocument


class CommonIssueMixin:
    """Mixin providing common issue tracking.

    This mixin requires that the composed class provides:
    - _snapshot(): Fresh copy of the store document
    - _transaction(operation): Read-modify-write context yielding the document
    - _now(): Current time
    """

    _logger: MenderLogger
    _now: Callable[[], datetime]
    _snapshot: Callable[[], StoreDocument]
    _transaction: Callable[[str], AbstractContextManager[StoreDocument]]

    async def save_common_issue(self, issue: CommonIssue) -> None:
        """Insert or replace an issue, keyed by its signature."""
        with self._transaction("save_common_issue") as document:
            document.common_issues[issue.signature] = issue
        self._logger.debug("common_issue_saved", signature=issue.signature)

    async def update_common_issue(self, signature: str, context: str) -> CommonIssue:
        """Record another sighting of an issue.

        An unseen signature is treated as a first sighting rather than an
        error: it is created with one occurrence and the given context.

        Args:
            signature: Issue key.
            context: Environment tag for this sighting (e.g. "production").

        Returns:
            The updated or newly created issue.
        """
        now = self._now()
        with self._transaction("update_common_issue") as document:
            issue = document.common_issues.get(signature)
            if issue is None:
                issue = CommonIssue.first_sighting(signature, context, now)
                document.common_issues[signature] = issue
            else:
                issue.record_occurrence(context, now)

        self._logger.debug(
            "common_issue_seen",
            signature=signature,
            occurrences=issue.occurrences,
        )
        return issue

    async def add_issue_solution(self, signature: str, summary: str) -> CommonIssue:
        """Attach a solution summary to an existing issue (deduplicated).

        Raises:
            IssueNotFoundError: If the signature has never been recorded.
        """
        with self._transaction("add_issue_solution") as document:
            issue = document.common_issues.get(signature)
            if issue is None:
                raise IssueNotFoundError(signature)
            issue.add_solution(summary)
        return issue

    async def load_common_issue(self, signature: str) -> CommonIssue | None:
        """Get a single issue, or None if the signature is unknown."""
        return self._snapshot().common_issues.get(signature)

    async def load_common_issues(self) -> list[CommonIssue]:
        """Return every tracked issue in storage order."""
        return list(self._snapshot().common_issues.values())
