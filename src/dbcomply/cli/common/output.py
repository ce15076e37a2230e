"""Output formatting utilities for the CLI."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterable, Mapping

import questionary
from rich.console import Console
from rich.table import Table
from rich.theme import Theme

from dbcomply.cli.common.tui_style import (
    QUESTIONARY_STYLE_CONFIRM,
    QUESTIONARY_STYLE_SELECT,
)
from dbcomply.core.models import (
    AssetValidation,
    CatalogAsset,
    DiscoveryProgress,
)

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)


def _tags(tags: Mapping[str, Any] | None) -> str:
    return ", ".join(f"{k}={v}" for k, v in (tags or {}).items())


def _pct_style(pct: int) -> str:
    if pct >= 90:
        return "ok"
    return "warn" if pct >= 50 else "err"


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages and tables."""

    def _q_try(self, fn, *args, **kwargs):
        """Call questionary prompts and drop unsupported kwargs on older versions."""
        try:
            return fn(*args, **kwargs)
        except TypeError:
            for k in ("pointer", "auto_enter"):
                kwargs.pop(k, None)
            return fn(*args, **kwargs)

    def _q(self, message: str) -> str:
        return f"[DBCOMPLY] {message}"

    def info(self, msg: str) -> None:
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def select_one(self, message: str, choices: list[Any]) -> Any | None:
        """
        Prompt the user to select a single item from a list (radio list).

        Choices may be plain strings or `questionary.Choice` objects.

        Returns:
            The selected value, or None if cancelled.
        """
        if not choices:
            return None

        prompt = self._q_try(
            questionary.select,
            self._q(message),
            choices=choices,
            style=QUESTIONARY_STYLE_SELECT,
            qmark="✦",
            instruction="Use ↑/↓ then Enter",
            pointer="❯",
        )
        return prompt.ask()

    def confirm(self, message: str, *, default: bool = False) -> bool:
        """Ask the user for confirmation using a standardized Questionary prompt."""
        console.print("[meta]Use y/n then Enter[/]")
        prompt = self._q_try(
            questionary.confirm,
            self._q(message),
            default=default,
            style=QUESTIONARY_STYLE_CONFIRM,
            qmark="✦",
            auto_enter=False,
        )
        return bool(prompt.ask())

    def environments_table(self, environments: Iterable[Any], title: str = "Environments") -> None:
        """Expects objects with .id .display_name .base_url (core Environment)."""
        t = Table(title=title, show_lines=False)
        t.add_column("ID", style="ok", no_wrap=True)
        t.add_column("Name")
        t.add_column("Host", style="meta")
        t.add_column("Auth", style="meta")

        for env in environments:
            auth = f"profile {env.profile}" if env.profile else (
                "token" if env.auth_token else "ambient"
            )
            t.add_row(env.id, env.display_name, env.base_url or "", auth)

        console.print(t)

    def progress_table(
        self, progress: Mapping[str, DiscoveryProgress], title: str = "Discovery status"
    ) -> None:
        t = Table(title=title, show_lines=False)
        t.add_column("Environment", style="ok", no_wrap=True)
        t.add_column("State")
        t.add_column("Catalogs", justify="right")
        t.add_column("Priority", justify="right", style="meta")
        t.add_column("Assets", justify="right")
        t.add_column("Error", style="err")

        for env_id, p in progress.items():
            if p.error:
                state = "[err]failed[/]"
            elif p.is_loading:
                state = "[warn]loading[/]"
            elif p.run_id:
                state = "[ok]done[/]"
            else:
                state = "[meta]idle[/]"
            t.add_row(
                env_id,
                state,
                f"{p.catalogs_processed}/{p.total_catalogs}",
                str(p.priority_catalogs),
                str(p.current_asset_count),
                p.error or "",
            )

        console.print(t)

    def assets_table(self, assets: Iterable[CatalogAsset], title: str = "Assets") -> None:
        t = Table(title=title, show_lines=False)
        t.add_column("Env", style="meta", no_wrap=True)
        t.add_column("Full name", style="ok")
        t.add_column("Type")
        t.add_column("Tags", style="meta")

        for a in assets:
            t.add_row(a.environment_id, a.full_name, a.asset_type.value, _tags(a.tags))

        console.print(t)

    def overview(self, report: Mapping[str, Any]) -> None:
        overall = report.get("overall", {})
        pct = int(overall.get("compliancePercentage", 0))
        self.header("Compliance overview")
        self.kv(
            {
                "Assets": overall.get("totalAssets", 0),
                "Catalogs scanned": overall.get("catalogsScanned", 0),
                "Compliant": overall.get("compliantAssets", 0),
                "Non-compliant": overall.get("nonCompliantAssets", 0),
                "Critical violations": overall.get("criticalViolations", 0),
                "Compliance": f"[{_pct_style(pct)}]{pct}%[/]",
            }
        )
        if overall.get("note"):
            console.print(f"[meta]{overall['note']}[/]")

        by_env = report.get("byEnvironment") or []
        if by_env:
            t = Table(title="By environment", show_lines=False)
            t.add_column("Environment", style="ok")
            t.add_column("Assets", justify="right")
            t.add_column("Compliant", justify="right")
            t.add_column("Critical", justify="right", style="err")
            t.add_column("Compliance", justify="right")
            for e in by_env:
                env_pct = int(e.get("compliancePercentage", 0))
                t.add_row(
                    str(e["environmentId"]),
                    str(e.get("totalAssets", 0)),
                    str(e.get("compliantAssets", 0)),
                    str(e.get("criticalViolations", 0)),
                    f"[{_pct_style(env_pct)}]{env_pct}%[/]",
                )
            console.print(t)

    def catalogs_table(self, report: Mapping[str, Any], title: str = "Catalog compliance") -> None:
        t = Table(title=title, show_lines=False)
        t.add_column("Environment", style="meta", no_wrap=True)
        t.add_column("Catalog", style="ok")
        t.add_column("Assets", justify="right")
        t.add_column("Non-compliant", justify="right")
        t.add_column("Critical", justify="right", style="err")
        t.add_column("Compliance", justify="right")

        for c in report.get("catalogCompliance", {}).values():
            pct = int(c.get("compliancePercentage", 0))
            t.add_row(
                str(c["environmentId"]),
                str(c["catalogName"]),
                str(c["totalAssets"]),
                str(c["nonCompliantAssets"]),
                str(c["criticalViolations"]),
                f"[{_pct_style(pct)}]{pct}%[/]",
            )

        console.print(t)
        summary = report.get("summary", {})
        self.kv(
            {
                "Catalogs": summary.get("totalCatalogs", 0),
                "Compliant catalogs": summary.get("compliantCatalogs", 0),
                "Non-compliant catalogs": summary.get("nonCompliantCatalogs", 0),
            }
        )

    def shares_table(
        self,
        shares: Iterable[Mapping[str, Any]],
        counts: Mapping[str, int] | None = None,
        title: str = "Shares",
    ) -> None:
        t = Table(title=title, show_lines=False)
        t.add_column("Environment", style="meta", no_wrap=True)
        t.add_column("Share", style="ok")
        t.add_column("Direction")
        t.add_column("Assets", justify="right")
        if counts is not None:
            t.add_column("Objects", justify="right")
        t.add_column("Compliance", justify="right")
        t.add_column("Status")

        for s in shares:
            c = s["compliance"]
            pct = int(c["percentage"])
            row = [
                str(s["environmentId"]),
                str(s["name"]),
                str(s["direction"]),
                str(s["tableCount"]) + ("" if s["fullyScanned"] else " [meta](not scanned)[/]"),
            ]
            if counts is not None:
                row.append(str(counts[s["name"]]) if s["name"] in counts else "-")
            row += [f"[{_pct_style(pct)}]{pct}%[/]", str(c["status"])]
            t.add_row(*row)

        console.print(t)

    def violations_table(
        self, results: Iterable[Mapping[str, Any]], title: str = "Violations"
    ) -> None:
        """Expects per-asset result dicts (AssetValidation.to_dict())."""
        t = Table(title=title, show_lines=False)
        t.add_column("Asset", style="ok")
        t.add_column("Agreement")
        t.add_column("Tag")
        t.add_column("Expected", style="meta")
        t.add_column("Actual")
        t.add_column("Severity")

        for r in results:
            for v in r.get("violations", []):
                sev_style = "err" if v["severity"] == "critical" else "warn"
                actual = v["actualValue"]
                t.add_row(
                    str(r["assetId"]),
                    str(v["agreementName"]),
                    str(v["tagKey"]),
                    str(v["expectedValue"]),
                    "[meta](missing)[/]" if actual is None else str(actual),
                    f"[{sev_style}]{v['severity']}[/]",
                )

        console.print(t)

    def validation(self, result: AssetValidation) -> None:
        if result.compliant:
            self.success(f"{result.asset_id} is compliant")
            return
        self.warn(
            f"{result.asset_id} has {len(result.violations)} violation(s), "
            f"{result.critical_count} critical"
        )
        self.violations_table([result.to_dict()], title="Asset violations")


out = Out()
