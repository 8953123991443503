"""Lead funnel, deal pipeline and lead-source effectiveness computations."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from crm_reporting.models.entities import DealStage, LeadStatus
from crm_reporting.services.aggregation import ChartDataItem, Number, source_name
from crm_reporting.services.records import field_value, to_amount

# Funnel progression, which differs from the enum's declaration order.
LEAD_FUNNEL_ORDER: tuple[LeadStatus, ...] = (
    LeadStatus.NEW,
    LeadStatus.CONTACTED,
    LeadStatus.QUALIFIED,
    LeadStatus.PROPOSAL_SENT,
    LeadStatus.NEGOTIATION,
    LeadStatus.WON,
    LeadStatus.LOST,
)

DEAL_STAGE_ORDER: tuple[DealStage, ...] = tuple(DealStage)
CLOSED_STAGES = frozenset({DealStage.CLOSED_WON, DealStage.CLOSED_LOST})


def percent(part: Number, whole: Number) -> Decimal:
    """``100 * part / whole``, or zero when ``whole`` is not positive."""

    if whole <= 0:
        return Decimal("0")
    return Decimal(part) * Decimal("100") / Decimal(whole)


def lead_status_of(lead: Any) -> LeadStatus:
    return LeadStatus(field_value(lead, "status"))


def deal_stage_of(deal: Any) -> DealStage:
    return DealStage(field_value(deal, "stage"))


def _deal_value(deal: Any) -> Number:
    return to_amount(field_value(deal, "value"))


def build_lead_funnel(leads: Iterable[Any]) -> list[ChartDataItem]:
    """Lead counts per status in funnel order; empty statuses are omitted."""

    counts: dict[LeadStatus, int] = {}
    for lead in leads:
        status = lead_status_of(lead)
        counts[status] = counts.get(status, 0) + 1
    return [
        ChartDataItem(name=status.value, value=counts[status])
        for status in LEAD_FUNNEL_ORDER
        if counts.get(status, 0) > 0
    ]


@dataclass(frozen=True, slots=True)
class StageSummary:
    stage: DealStage
    deal_count: int
    total_value: Number


@dataclass(frozen=True, slots=True)
class DealPipelineSummary:
    """Stage buckets plus the pipeline scalars.

    ``chart`` omits zero-value stages; ``stages`` keeps every stage for the
    table view.
    """

    chart: list[ChartDataItem]
    stages: list[StageSummary]
    active_pipeline_value: Number
    total_closed_won_value: Number


def build_deal_pipeline(deals: Iterable[Any]) -> DealPipelineSummary:
    values: dict[DealStage, Number] = {}
    counts: dict[DealStage, int] = {}
    active_pipeline_value: Number = 0
    total_closed_won_value: Number = 0

    for deal in deals:
        stage = deal_stage_of(deal)
        value = _deal_value(deal)
        values[stage] = values.get(stage, 0) + value
        counts[stage] = counts.get(stage, 0) + 1
        if stage not in CLOSED_STAGES:
            active_pipeline_value += value
        elif stage is DealStage.CLOSED_WON:
            total_closed_won_value += value

    stages = [
        StageSummary(stage=stage, deal_count=counts.get(stage, 0), total_value=values.get(stage, 0))
        for stage in DEAL_STAGE_ORDER
    ]
    chart = [
        ChartDataItem(name=summary.stage.value, value=summary.total_value)
        for summary in stages
        if summary.total_value > 0
    ]
    return DealPipelineSummary(
        chart=chart,
        stages=stages,
        active_pipeline_value=active_pipeline_value,
        total_closed_won_value=total_closed_won_value,
    )


@dataclass(frozen=True, slots=True)
class SourceEffectivenessRow:
    source: str
    total_leads: int
    deals_created: int
    lead_to_deal_rate: Decimal
    won_deals: int
    lead_to_won_deal_rate: Decimal
    total_won_value: Number


@dataclass(slots=True)
class _SourceTally:
    total_leads: int = 0
    deals_created: int = 0
    won_deals: int = 0
    total_won_value: Number = 0


def build_source_effectiveness(
    leads: Sequence[Any],
    deals: Iterable[Any],
) -> list[SourceEffectivenessRow]:
    """Per-source lead, deal and win statistics, most leads first.

    Deals are attributed through ``lead_id`` to the first lead with that id.
    Deals whose lead cannot be found are left out of every bucket.
    """

    tallies: dict[str, _SourceTally] = {}
    source_by_lead_id: dict[Any, str] = {}
    for lead in leads:
        name = source_name(field_value(lead, "source"))
        tallies.setdefault(name, _SourceTally()).total_leads += 1
        source_by_lead_id.setdefault(field_value(lead, "id"), name)

    for deal in deals:
        lead_id = field_value(deal, "lead_id")
        if not lead_id or lead_id not in source_by_lead_id:
            continue
        tally = tallies[source_by_lead_id[lead_id]]
        tally.deals_created += 1
        if deal_stage_of(deal) is DealStage.CLOSED_WON:
            tally.won_deals += 1
            tally.total_won_value += _deal_value(deal)

    rows = [
        SourceEffectivenessRow(
            source=name,
            total_leads=tally.total_leads,
            deals_created=tally.deals_created,
            lead_to_deal_rate=percent(tally.deals_created, tally.total_leads),
            won_deals=tally.won_deals,
            lead_to_won_deal_rate=percent(tally.won_deals, tally.total_leads),
            total_won_value=tally.total_won_value,
        )
        for name, tally in tallies.items()
    ]
    # list.sort is stable, so equal lead counts keep first-seen source order.
    rows.sort(key=lambda row: row.total_leads, reverse=True)
    return rows
