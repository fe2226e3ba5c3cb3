"""Rebuild of the ``picks_history`` read view."""

from sqlalchemy import delete, insert, select
from sqlalchemy.orm import Session
from structlog import get_logger

from weekly_picks.database.models import Pick, PicksHistory, Report
from weekly_picks.instrumentation.metrics import READ_VIEW_REFRESHES

logger = get_logger()


class ReadViewRefresher:
    """Recomputes the report x pick projection from scratch.

    Delete and insert-select run in one transaction, so readers see either
    the old projection or the new one. Running it twice yields the same rows.
    """

    def __init__(self, db: Session):
        self.db = db

    def refresh(self) -> int:
        projection = select(
            Pick.pick_id,
            Pick.report_id,
            Report.published_at,
            Report.period_key,
            Pick.ticker,
            Pick.exchange,
            Pick.side,
            Pick.target_change_pct,
        ).join(Report, Report.report_id == Pick.report_id)

        try:
            self.db.execute(delete(PicksHistory))
            self.db.execute(
                insert(PicksHistory).from_select(
                    [
                        "pick_id",
                        "report_id",
                        "published_at",
                        "period_key",
                        "ticker",
                        "exchange",
                        "side",
                        "target_change_pct",
                    ],
                    projection,
                )
            )
            row_count = self.db.query(PicksHistory).count()
            self.db.commit()
        except Exception:
            self.db.rollback()
            READ_VIEW_REFRESHES.labels(status="failed").inc()
            raise

        READ_VIEW_REFRESHES.labels(status="success").inc()
        logger.info("read_view_refreshed", rows=row_count)
        return row_count
