"""
Operator decisions needed while exploring.

The orchestrator and the country resolver never prompt anyone directly: they
call a ``Disambiguator``. ``ConsoleDisambiguator`` asks a human in the
terminal, ``ScriptedDisambiguator`` answers from preset values (unattended
runs and tests).
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from rich.console import Console
from rich.prompt import Confirm, Prompt
from rich.table import Table

from explorer.entities import CountryInfo, RegionInfo
from explorer.services.product_extractor import PageSummary

logger = logging.getLogger(__name__)


class PageAction(str, Enum):
    """Ruling on a page anomaly."""

    CONTINUE = "continue"  # extract the page anyway
    SKIP = "skip"
    STOP = "stop"


def describe_country(country: Dict[str, Any]) -> str:
    """One-line label, e.g. United States (US) / Kentucky."""
    names = country.get("names") or {}
    regions = country.get("regions") or []
    label = f"{names.get('en', '?')} ({country.get('iso', '?')})"
    if len(regions) == 1:
        return f"{label} / {(regions[0].get('names') or {}).get('en', '?')}"
    return f"{label} / ({len(regions)} region(s))"


class Disambiguator:
    """Interface of the operator callback."""

    def resolve_anomaly(self, reason: str, summary: PageSummary) -> PageAction:
        raise NotImplementedError

    def confirm_fallback_breadcrumbs(self, fallback: str) -> bool:
        raise NotImplementedError

    def choose_country(self, candidates: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def choose_region(self, country: CountryInfo) -> Optional[RegionInfo]:
        raise NotImplementedError

    def ask_country_name(self) -> Optional[str]:
        raise NotImplementedError

    def confirm_guess(self, country: CountryInfo, provider: str) -> bool:
        raise NotImplementedError


class ConsoleDisambiguator(Disambiguator):
    """Interactive prompts on the terminal."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()

    def resolve_anomaly(self, reason: str, summary: PageSummary) -> PageAction:
        self.console.print(f"\n[bold red]{reason}[/bold red]  {summary.url}")
        self.console.print(f"breadcrumbs: [yellow]{summary.breadcrumbs}[/yellow]")
        self.console.print(f"brand: [yellow]{summary.brand}[/yellow]")
        self.console.print(f"alcohol_type: [yellow]{summary.alcohol_type}[/yellow]")
        if summary.text:
            self.console.print(summary.text[:2000], style="dim")

        answer = Prompt.ask(
            "What are we doing? (continue extracts the product anyway)",
            choices=[action.value for action in PageAction],
            default=PageAction.SKIP.value,
            console=self.console,
        )
        return PageAction(answer)

    def confirm_fallback_breadcrumbs(self, fallback: str) -> bool:
        return Confirm.ask(
            f"Do you want to replace breadcrumbs with '{fallback}'?",
            default=False,
            console=self.console,
        )

    def _choose(self, labels: List[str], title: str) -> Optional[int]:
        table = Table(title=title)
        table.add_column("#", justify="right")
        table.add_column("Candidate")
        for index, label in enumerate(labels, start=1):
            table.add_row(str(index), label)
        table.add_row("0", "None of them")
        self.console.print(table)

        answer = Prompt.ask(
            "Choice",
            choices=[str(i) for i in range(len(labels) + 1)],
            default="0",
            console=self.console,
        )
        index = int(answer)
        return index - 1 if index > 0 else None

    def choose_country(self, candidates: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if not candidates:
            return None
        index = self._choose([describe_country(c) for c in candidates], "Select a country/region")
        return candidates[index] if index is not None else None

    def choose_region(self, country: CountryInfo) -> Optional[RegionInfo]:
        if not country.regions:
            return None
        labels = [f"{r.names.get('en', '?')} ({r.iso})" for r in country.regions]
        index = self._choose(labels, f"Several regions found in {country.names.get('en', country.iso)}")
        return country.regions[index] if index is not None else None

    def ask_country_name(self) -> Optional[str]:
        answer = Prompt.ask("Enter a country or region name (empty to give up)", default="", console=self.console)
        return answer.strip() or None

    def confirm_guess(self, country: CountryInfo, provider: str) -> bool:
        self.console.print(f"[magenta]{provider}[/magenta] guess: {describe_country(country.to_dict())}")
        return Confirm.ask("Are you sure you want to save this country's data?", default=True, console=self.console)


class ScriptedDisambiguator(Disambiguator):
    """
    Preset answers, consumed in order.

    ``anomaly_actions`` / ``country_names`` / ``choices`` are queues; when a
    queue is exhausted the default answer applies (skip the page, choose
    nothing, type nothing). Every call is recorded in ``calls``.
    """

    def __init__(
        self,
        anomaly_actions: Optional[Iterable[PageAction]] = None,
        country_choices: Optional[Iterable[Optional[int]]] = None,
        region_choices: Optional[Iterable[Optional[int]]] = None,
        country_names: Optional[Iterable[Optional[str]]] = None,
        accept_breadcrumbs: bool = False,
        accept_guesses: bool = True,
        default_action: PageAction = PageAction.SKIP,
    ):
        self.anomaly_actions = list(anomaly_actions or [])
        self.country_choices = list(country_choices or [])
        self.region_choices = list(region_choices or [])
        self.country_names = list(country_names or [])
        self.accept_breadcrumbs = accept_breadcrumbs
        self.accept_guesses = accept_guesses
        self.default_action = default_action
        self.calls: List[str] = []

    def resolve_anomaly(self, reason: str, summary: PageSummary) -> PageAction:
        self.calls.append("resolve_anomaly")
        action = self.anomaly_actions.pop(0) if self.anomaly_actions else self.default_action
        logger.info(f"Page anomaly '{reason}' on {summary.url}: {action.value}")
        return action

    def confirm_fallback_breadcrumbs(self, fallback: str) -> bool:
        self.calls.append("confirm_fallback_breadcrumbs")
        return self.accept_breadcrumbs

    def choose_country(self, candidates: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        self.calls.append("choose_country")
        index = self.country_choices.pop(0) if self.country_choices else None
        if index is None or index >= len(candidates):
            return None
        return candidates[index]

    def choose_region(self, country: CountryInfo) -> Optional[RegionInfo]:
        self.calls.append("choose_region")
        index = self.region_choices.pop(0) if self.region_choices else None
        if index is None or index >= len(country.regions):
            return None
        return country.regions[index]

    def ask_country_name(self) -> Optional[str]:
        self.calls.append("ask_country_name")
        return self.country_names.pop(0) if self.country_names else None

    def confirm_guess(self, country: CountryInfo, provider: str) -> bool:
        self.calls.append("confirm_guess")
        return self.accept_guesses
