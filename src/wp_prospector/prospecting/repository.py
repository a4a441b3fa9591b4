"""SQLModel-backed storage facade for search results and pagination cursors."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from pathlib import Path

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Session, col, delete, select

from wp_prospector.prospecting.errors import DuplicateLinkError, StoreError
from wp_prospector.prospecting.links import link_domain
from wp_prospector.prospecting.models import (
    AnalyticsSummary,
    CountBucket,
    HistoryEntry,
    MetadataUpdate,
    MetadataUpdateReport,
    NewSearchResult,
    PaginationCursor,
    ProcessingState,
    ResultCategory,
    SearchResultView,
)
from wp_prospector.prospecting.storage.alembic_runner import upgrade_head
from wp_prospector.prospecting.storage.common import (
    build_sqlite_engine,
    connect_sqlite_with_policy,
    to_utc_aware,
    utc_now,
)
from wp_prospector.prospecting.storage.sqlmodel_models import (
    SearchPaginationRow,
    SearchResultRow,
)

logger = logging.getLogger(__name__)
DEFAULT_BUSY_TIMEOUT_MS = 5_000
ANALYTICS_ACTIVITY_DAYS = 30
ANALYTICS_TOP_QUERIES = 10


class SQLiteRepository:
    """Facade that persists search results and cursors using SQLModel and Alembic."""

    def __init__(self, db_path: Path, *, busy_timeout_ms: int = DEFAULT_BUSY_TIMEOUT_MS) -> None:
        self.db_path = db_path
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=busy_timeout_ms)

        # Keep low-level connection for tests and ad-hoc debugging queries.
        self._connection = connect_sqlite_with_policy(
            db_path=db_path,
            busy_timeout_ms=busy_timeout_ms,
        )

    def close(self) -> None:
        self._connection.close()
        self.engine.dispose()

    def __enter__(self) -> SQLiteRepository:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def init_schema(self) -> None:
        upgrade_head(self.db_path)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with Session(self.engine) as session:
                yield session
        except IntegrityError as error:
            raise StoreError(f"Store constraint violated: {error.orig}") from error
        except SQLAlchemyError as error:
            raise StoreError(f"Store unavailable: {error}") from error

    # Search results

    def insert_many(self, results: list[NewSearchResult]) -> list[int]:
        """Insert a batch atomically and return the new ids in input order."""

        if not results:
            return []
        now = _to_db_datetime(utc_now())
        with self._session() as session:
            rows = [_to_row(result, now=now) for result in results]
            session.add_all(rows)
            try:
                session.commit()
            except IntegrityError as error:
                session.rollback()
                raise StoreError(
                    f"Batch insert rejected, no rows written: {error.orig}",
                ) from error
            ids = [int(row.id) for row in rows if row.id is not None]
        logger.debug("Inserted %d search results.", len(ids))
        return ids

    def insert_one(self, result: NewSearchResult) -> int:
        now = _to_db_datetime(utc_now())
        with self._session() as session:
            row = _to_row(result, now=now)
            session.add(row)
            try:
                session.commit()
            except IntegrityError as error:
                session.rollback()
                raise DuplicateLinkError(
                    f"Link already stored for this user: {result.link}",
                ) from error
            if row.id is None:
                raise StoreError("Inserted search result row has no id")
            return int(row.id)

    def find_by_query(self, query: str, user_id: str | None = None) -> list[SearchResultView]:
        with self._session() as session:
            statement = select(SearchResultRow).where(SearchResultRow.search_query == query)
            if user_id is not None:
                statement = statement.where(SearchResultRow.user_id == user_id)
            statement = statement.order_by(
                col(SearchResultRow.created_at).desc(),
                col(SearchResultRow.position).asc().nulls_last(),
                col(SearchResultRow.id).asc(),
            )
            return [_to_view(row) for row in session.exec(statement).all()]

    def find_by_ids(self, ids: Iterable[int], user_id: str | None = None) -> list[SearchResultView]:
        id_list = list(ids)
        if not id_list:
            return []
        with self._session() as session:
            statement = select(SearchResultRow).where(col(SearchResultRow.id).in_(id_list))
            if user_id is not None:
                statement = statement.where(SearchResultRow.user_id == user_id)
            rows = {int(row.id): row for row in session.exec(statement).all() if row.id is not None}
        return [_to_view(rows[result_id]) for result_id in id_list if result_id in rows]

    def find_by_id(self, result_id: int, user_id: str | None = None) -> SearchResultView | None:
        with self._session() as session:
            statement = select(SearchResultRow).where(SearchResultRow.id == result_id)
            if user_id is not None:
                statement = statement.where(SearchResultRow.user_id == user_id)
            row = session.exec(statement).one_or_none()
            return _to_view(row) if row is not None else None

    def find_latest_by_link(self, link: str, user_id: str) -> SearchResultView | None:
        """Most recent row for the link's domain; the scheme is ignored."""

        with self._session() as session:
            row = session.exec(
                select(SearchResultRow)
                .where(
                    SearchResultRow.user_id == user_id,
                    SearchResultRow.domain == _domain_key(link),
                )
                .order_by(
                    col(SearchResultRow.created_at).desc(),
                    col(SearchResultRow.id).desc(),
                )
                .limit(1),
            ).one_or_none()
            return _to_view(row) if row is not None else None

    def delete_by_query(self, query: str, user_id: str | None = None) -> int:
        with self._session() as session:
            deleted = _delete_results(session, query=query, user_id=user_id)
            session.commit()
            return deleted

    def delete_query_with_cursor(self, query: str, user_id: str) -> int:
        """Delete all results and the cursor for one query in one transaction."""

        with self._session() as session:
            deleted = _delete_results(session, query=query, user_id=user_id)
            session.exec(
                delete(SearchPaginationRow).where(
                    col(SearchPaginationRow.search_query) == query,
                    col(SearchPaginationRow.user_id) == user_id,
                ),
            )
            session.commit()
        logger.info("Deleted %d results and cursor for query %r.", deleted, query)
        return deleted

    def count(self, user_id: str | None = None) -> int:
        with self._session() as session:
            statement = select(func.count()).select_from(SearchResultRow)
            if user_id is not None:
                statement = statement.where(col(SearchResultRow.user_id) == user_id)
            return int(session.exec(statement).one())

    def domain_exists(self, link: str, user_id: str | None = None) -> bool:
        with self._session() as session:
            statement = (
                select(func.count())
                .select_from(SearchResultRow)
                .where(col(SearchResultRow.domain) == _domain_key(link))
            )
            if user_id is not None:
                statement = statement.where(col(SearchResultRow.user_id) == user_id)
            return int(session.exec(statement).one()) > 0

    def update_status(
        self,
        result_id: int,
        status: ProcessingState,
        user_id: str | None = None,
    ) -> bool:
        with self._session() as session:
            statement = (
                update(SearchResultRow)
                .where(col(SearchResultRow.id) == result_id)
                .values(processed=int(status), updated_at=_to_db_datetime(utc_now()))
            )
            if user_id is not None:
                statement = statement.where(col(SearchResultRow.user_id) == user_id)
            changed = session.exec(statement).rowcount  # type: ignore[call-overload]
            session.commit()
            return bool(changed)

    def update_status_by_query(
        self,
        query: str,
        status: ProcessingState,
        user_id: str | None = None,
    ) -> int:
        with self._session() as session:
            statement = (
                update(SearchResultRow)
                .where(col(SearchResultRow.search_query) == query)
                .values(processed=int(status), updated_at=_to_db_datetime(utc_now()))
            )
            if user_id is not None:
                statement = statement.where(col(SearchResultRow.user_id) == user_id)
            changed = session.exec(statement).rowcount  # type: ignore[call-overload]
            session.commit()
            return int(changed or 0)

    def transition_status(
        self,
        result_id: int,
        *,
        from_states: Iterable[ProcessingState],
        to_state: ProcessingState,
        errors: str | None = None,
        scan_details: str | None = None,
        record_outcome: bool = False,
    ) -> bool:
        """Compare-and-set the processing state; False when the row moved meanwhile."""

        values: dict[str, object] = {
            "processed": int(to_state),
            "updated_at": _to_db_datetime(utc_now()),
        }
        if record_outcome:
            values["errors"] = errors
            values["scan_details"] = scan_details
        with self._session() as session:
            changed = session.exec(  # type: ignore[call-overload]
                update(SearchResultRow)
                .where(
                    col(SearchResultRow.id) == result_id,
                    col(SearchResultRow.processed).in_([int(state) for state in from_states]),
                )
                .values(**values),
            ).rowcount
            session.commit()
            return bool(changed)

    def update_metadata(
        self,
        updates: Iterable[MetadataUpdate],
        user_id: str | None = None,
    ) -> MetadataUpdateReport:
        """Apply site metadata in one transaction; unknown ids are reported, not raised."""

        report = MetadataUpdateReport()
        now = _to_db_datetime(utc_now())
        with self._session() as session:
            for item in updates:
                statement = (
                    update(SearchResultRow)
                    .where(col(SearchResultRow.id) == item.result_id)
                    .values(
                        contact_url=item.contact_url,
                        category=int(item.category),
                        is_wordpress=item.is_wordpress,
                        updated_at=now,
                    )
                )
                if user_id is not None:
                    statement = statement.where(col(SearchResultRow.user_id) == user_id)
                changed = session.exec(statement).rowcount  # type: ignore[call-overload]
                if changed:
                    report.updated += 1
                else:
                    report.errors.append(f"Result {item.result_id} not found")
            session.commit()
        logger.info(
            "Updated metadata for %d results (%d missing).",
            report.updated,
            len(report.errors),
        )
        return report

    def claim_next_unprocessed(self) -> SearchResultView | None:
        """Move the oldest unprocessed or failed row to in-progress and return it."""

        claimable = [int(ProcessingState.UNPROCESSED), int(ProcessingState.ERROR)]
        while True:
            with self._session() as session:
                row = session.exec(
                    select(SearchResultRow)
                    .where(
                        col(SearchResultRow.processed).in_(claimable),
                        col(SearchResultRow.link) != "",
                    )
                    .order_by(col(SearchResultRow.created_at).asc(), col(SearchResultRow.id).asc())
                    .limit(1),
                ).one_or_none()
                if row is None:
                    return None
                claimed = session.exec(  # type: ignore[call-overload]
                    update(SearchResultRow)
                    .where(
                        col(SearchResultRow.id) == row.id,
                        col(SearchResultRow.processed).in_(claimable),
                    )
                    .values(
                        processed=int(ProcessingState.IN_PROGRESS),
                        updated_at=_to_db_datetime(utc_now()),
                    ),
                ).rowcount
                session.commit()
                if not claimed:
                    # Another worker claimed it between select and update.
                    continue
                session.refresh(row)
                return _to_view(row)

    def search_history(self, user_id: str | None = None) -> list[HistoryEntry]:
        with self._session() as session:
            last_search = func.max(SearchResultRow.created_at)
            statement = select(
                SearchResultRow.search_query,
                func.count(),
                last_search,
            )
            if user_id is not None:
                statement = statement.where(SearchResultRow.user_id == user_id)
            statement = statement.group_by(SearchResultRow.search_query).order_by(
                last_search.desc(),
            )
            rows = session.exec(statement).all()
        return [
            HistoryEntry(
                search_query=search_query,
                count=int(count),
                last_search=_parse_db_datetime(last),
            )
            for search_query, count, last in rows
        ]

    # Pagination cursors

    def get_cursor(self, query: str, user_id: str) -> PaginationCursor | None:
        with self._session() as session:
            row = session.exec(
                select(SearchPaginationRow).where(
                    SearchPaginationRow.search_query == query,
                    SearchPaginationRow.user_id == user_id,
                ),
            ).one_or_none()
            return _to_cursor(row) if row is not None else None

    def upsert_cursor(
        self,
        query: str,
        user_id: str,
        *,
        last_start_position: int,
        total_requests_made: int,
    ) -> PaginationCursor:
        with self._session() as session:
            row = session.exec(
                select(SearchPaginationRow).where(
                    SearchPaginationRow.search_query == query,
                    SearchPaginationRow.user_id == user_id,
                ),
            ).one_or_none()
            if row is None:
                row = SearchPaginationRow(
                    search_query=query,
                    user_id=user_id,
                    last_start_position=last_start_position,
                    total_requests_made=total_requests_made,
                    last_updated=_to_db_datetime(utc_now()),
                )
            else:
                row.last_start_position = last_start_position
                row.total_requests_made = total_requests_made
                row.last_updated = _to_db_datetime(utc_now())
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_cursor(row)

    def delete_cursor(self, query: str, user_id: str) -> bool:
        with self._session() as session:
            deleted = session.exec(  # type: ignore[call-overload]
                delete(SearchPaginationRow).where(
                    col(SearchPaginationRow.search_query) == query,
                    col(SearchPaginationRow.user_id) == user_id,
                ),
            ).rowcount
            session.commit()
            return bool(deleted)

    def list_cursors(self, user_id: str) -> list[PaginationCursor]:
        with self._session() as session:
            rows = session.exec(
                select(SearchPaginationRow)
                .where(SearchPaginationRow.user_id == user_id)
                .order_by(
                    col(SearchPaginationRow.last_updated).desc(),
                    col(SearchPaginationRow.id).desc(),
                ),
            ).all()
            return [_to_cursor(row) for row in rows]

    # Analytics

    def summarize(self, user_id: str, *, now: datetime | None = None) -> AnalyticsSummary:
        activity_since = _to_db_datetime(
            (now or utc_now()) - timedelta(days=ANALYTICS_ACTIVITY_DAYS),
        )
        summary = AnalyticsSummary()
        with self._session() as session:
            summary.total_results = int(
                session.exec(
                    select(func.count())
                    .select_from(SearchResultRow)
                    .where(col(SearchResultRow.user_id) == user_id),
                ).one(),
            )
            summary.processed_stats = [
                CountBucket(key=int(key), count=int(count))
                for key, count in session.exec(
                    select(SearchResultRow.processed, func.count())
                    .where(SearchResultRow.user_id == user_id)
                    .group_by(SearchResultRow.processed)
                    .order_by(SearchResultRow.processed),
                ).all()
            ]
            summary.category_stats = [
                CountBucket(key=int(key), count=int(count))
                for key, count in session.exec(
                    select(SearchResultRow.category, func.count())
                    .where(SearchResultRow.user_id == user_id)
                    .group_by(SearchResultRow.category)
                    .order_by(SearchResultRow.category),
                ).all()
            ]
            day = func.date(SearchResultRow.created_at)
            summary.search_activity = [
                CountBucket(key=str(key), count=int(count))
                for key, count in session.exec(
                    select(day, func.count())
                    .where(
                        SearchResultRow.user_id == user_id,
                        col(SearchResultRow.created_at) >= activity_since,
                    )
                    .group_by(day)
                    .order_by(day),
                ).all()
            ]
            last_search = func.max(SearchResultRow.created_at)
            summary.top_queries = [
                HistoryEntry(
                    search_query=search_query,
                    count=int(count),
                    last_search=_parse_db_datetime(last),
                )
                for search_query, count, last in session.exec(
                    select(SearchResultRow.search_query, func.count(), last_search)
                    .where(SearchResultRow.user_id == user_id)
                    .group_by(SearchResultRow.search_query)
                    .order_by(func.count().desc(), last_search.desc())
                    .limit(ANALYTICS_TOP_QUERIES),
                ).all()
            ]
            summary.results_with_errors = int(
                session.exec(
                    select(func.count())
                    .select_from(SearchResultRow)
                    .where(
                        col(SearchResultRow.user_id) == user_id,
                        col(SearchResultRow.errors).is_not(None),
                    ),
                ).one(),
            )
            total_queries, total_requests, avg_requests = session.exec(
                select(
                    func.count(),
                    func.coalesce(func.sum(SearchPaginationRow.total_requests_made), 0),
                    func.coalesce(func.avg(SearchPaginationRow.total_requests_made), 0.0),
                ).where(SearchPaginationRow.user_id == user_id),
            ).one()
        summary.total_queries = int(total_queries)
        summary.total_requests = int(total_requests)
        summary.avg_requests_per_query = float(avg_requests)
        return summary


def _delete_results(session: Session, *, query: str, user_id: str | None) -> int:
    statement = delete(SearchResultRow).where(col(SearchResultRow.search_query) == query)
    if user_id is not None:
        statement = statement.where(col(SearchResultRow.user_id) == user_id)
    return int(session.exec(statement).rowcount or 0)  # type: ignore[call-overload]


def _domain_key(link: str) -> str:
    return link_domain(link) or link.strip().lower()


def _to_row(result: NewSearchResult, *, now: datetime) -> SearchResultRow:
    return SearchResultRow(
        search_query=result.search_query,
        title=result.title,
        link=result.link,
        domain=_domain_key(result.link),
        snippet=result.snippet,
        position=result.position,
        serpapi_position=result.serpapi_position,
        user_id=result.user_id,
        processed=int(result.processed),
        category=int(result.category),
        search_date=now,
        created_at=now,
    )


def _to_view(row: SearchResultRow) -> SearchResultView:
    if row.id is None:
        raise StoreError("Search result row has no id")
    return SearchResultView(
        id=int(row.id),
        search_query=row.search_query,
        link=row.link,
        user_id=row.user_id,
        title=row.title,
        snippet=row.snippet,
        position=row.position,
        serpapi_position=row.serpapi_position,
        processed=ProcessingState(row.processed),
        category=_to_category(row.category),
        search_date=to_utc_aware(row.search_date),
        created_at=to_utc_aware(row.created_at),
        updated_at=to_utc_aware(row.updated_at) if row.updated_at is not None else None,
        errors=row.errors,
        scan_details=row.scan_details,
        contact_url=row.contact_url,
        is_wordpress=row.is_wordpress,
    )


def _to_category(value: int) -> ResultCategory:
    try:
        return ResultCategory(value)
    except ValueError:
        logger.warning("Unknown result category %r, treating as auto-discovered.", value)
        return ResultCategory.AUTO_DISCOVERED


def _to_cursor(row: SearchPaginationRow) -> PaginationCursor:
    return PaginationCursor(
        search_query=row.search_query,
        user_id=row.user_id,
        last_start_position=row.last_start_position,
        total_requests_made=row.total_requests_made,
        last_updated=to_utc_aware(row.last_updated),
    )


def _to_db_datetime(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def _parse_db_datetime(value: datetime | str) -> datetime:
    if isinstance(value, str):
        return to_utc_aware(datetime.fromisoformat(value))
    return to_utc_aware(value)
