"""Resolve where a capture should be inserted.

A page destination is a direct guid lookup. A journal destination walks an
ordered chain of strategies; the first one that yields a record wins.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Awaitable, Callable, List, Optional, Sequence

from loguru import logger

from clipbridge.bridge.messages import DestinationRef, DestinationType

from .dates import DateKeys, trailing_date
from .model import Collection, HostUI, Record, RecordIndex

JOURNAL_COLLECTION = "journal"


@dataclass
class ResolutionContext:
    """Everything a journal strategy may look at."""
    index: RecordIndex
    ui: Optional[HostUI]
    today: date
    journal: Optional[Collection] = None
    journal_records: List[Record] = field(default_factory=list)

    @property
    def keys(self) -> DateKeys:
        return DateKeys.for_date(self.today)

    @classmethod
    async def build(cls, index: RecordIndex, ui: Optional[HostUI], today: date) -> "ResolutionContext":
        ctx = cls(index=index, ui=ui, today=today)
        for collection in await index.get_all_collections():
            if (collection.name or "").lower() == JOURNAL_COLLECTION:
                ctx.journal = collection
                ctx.journal_records = await collection.get_all_records()
                break
        return ctx


Strategy = Callable[[ResolutionContext], Awaitable[Optional[Record]]]


def is_todays_entry(record: Record, keys: DateKeys) -> bool:
    if record.guid and record.guid.endswith(keys.compact):
        return True
    name = record.name or ""
    return keys.month_day in name or keys.compact in name


async def todays_journal_entry(ctx: ResolutionContext) -> Optional[Record]:
    # enumeration order wins when several entries match
    keys = ctx.keys
    for record in ctx.journal_records:
        if is_todays_entry(record, keys):
            return record
    return None


async def create_journal_entry(ctx: ResolutionContext) -> Optional[Record]:
    if ctx.journal is None:
        return None
    guid = await ctx.journal.create_record(ctx.keys.full)
    if not guid:
        return None
    logger.info(f"Created journal entry {ctx.keys.full!r}")
    return await ctx.index.get_record(guid)


async def latest_journal_entry(ctx: ResolutionContext) -> Optional[Record]:
    if not ctx.journal_records:
        return None
    latest, latest_date = ctx.journal_records[0], ""
    for record in ctx.journal_records:
        dated = trailing_date(record.guid)
        if dated > latest_date:
            latest, latest_date = record, dated
    return latest


async def active_record(ctx: ResolutionContext) -> Optional[Record]:
    if ctx.ui is None:
        return None
    return ctx.ui.get_active_record()


async def scan_for_todays_guid(ctx: ResolutionContext) -> Optional[Record]:
    compact = ctx.keys.compact
    for record in await ctx.index.get_all_records():
        if record.guid and record.guid.endswith(compact):
            return record
    return None


JOURNAL_STRATEGIES: Sequence[Strategy] = (
    todays_journal_entry,
    create_journal_entry,
    latest_journal_entry,
    active_record,
    scan_for_todays_guid,
)


class DestinationResolver:
    """Locates the anchor record for a destination."""

    def __init__(
        self,
        index: RecordIndex,
        ui: Optional[HostUI] = None,
        strategies: Sequence[Strategy] = JOURNAL_STRATEGIES,
        clock: Callable[[], date] = date.today,
    ):
        self.index = index
        self.ui = ui
        self.strategies = tuple(strategies)
        self.clock = clock

    async def resolve(self, destination: DestinationRef) -> Optional[Record]:
        if destination.type == DestinationType.PAGE:
            return await self.resolve_page(destination.page_guid)
        return await self.resolve_journal()

    async def resolve_page(self, page_guid: Optional[str]) -> Optional[Record]:
        if not page_guid:
            logger.warning("Page destination without a page guid")
            return None
        record = await self.index.get_record(page_guid)
        if record is None:
            logger.warning(f"Page {page_guid} not found")
        return record

    async def resolve_journal(self) -> Optional[Record]:
        today = self.clock()
        try:
            ctx = await ResolutionContext.build(self.index, self.ui, today)
        except Exception as e:
            logger.error(f"Could not list collections: {e}")
            ctx = ResolutionContext(index=self.index, ui=self.ui, today=today)

        for strategy in self.strategies:
            try:
                record = await strategy(ctx)
            except Exception as e:
                logger.error(f"Journal strategy {strategy.__name__} failed: {e}")
                continue
            if record is not None:
                logger.debug(f"Journal resolved by {strategy.__name__}: {record.name!r}")
                return record

        logger.warning(f"No journal entry found for {ctx.keys.compact}")
        return None
