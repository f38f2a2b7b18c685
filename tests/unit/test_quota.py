"""Unit tests for quota policy and the counter-backed tracker"""

import threading
import pytest
from datetime import date
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from debtflow.domain.models import Channel
from debtflow.domain.quota import ensure_channel_eligible, monthly_limit, period_for
from debtflow.domain.exceptions import PlanNotEligible, QuotaExceeded
from debtflow.infrastructure.database.models import Base, QuotaCounter, UserAccount
from debtflow.infrastructure.database.quota import QuotaTracker

TODAY = date(2024, 4, 10)


def test_plan_limits():
    assert monthly_limit("free") == 0
    assert monthly_limit("basic") == 100
    assert monthly_limit("pro") == 1000
    assert monthly_limit("enterprise") == 10000
    assert monthly_limit("basic", override=5) == 5


def test_free_plan_never_eligible_for_whatsapp():
    ensure_channel_eligible("free", Channel.EMAIL)
    with pytest.raises(PlanNotEligible):
        ensure_channel_eligible("free", Channel.WHATSAPP)


def test_period_is_calendar_month():
    assert period_for(date(2024, 4, 30)) == "2024-04"
    assert period_for(date(2024, 12, 1)) == "2024-12"


def test_email_is_always_allowed(db, make_user):
    make_user("user_free", plan="free")

    reservation = QuotaTracker(db).check_and_reserve("user_free", Channel.EMAIL, TODAY)

    assert reservation.metered is False
    assert db.query(QuotaCounter).count() == 0


def test_free_plan_denied_even_with_override(db, make_user):
    make_user("user_free", plan="free", override=50)

    with pytest.raises(PlanNotEligible):
        QuotaTracker(db).check_and_reserve("user_free", Channel.WHATSAPP, TODAY)


def test_reserve_commit_release_cycle(db, make_user):
    make_user("user_basic", plan="basic", override=2)
    tracker = QuotaTracker(db)

    first = tracker.check_and_reserve("user_basic", Channel.WHATSAPP, TODAY)
    assert tracker.remaining("user_basic", Channel.WHATSAPP, TODAY) == 1

    tracker.commit(first)
    second = tracker.check_and_reserve("user_basic", Channel.WHATSAPP, TODAY)
    tracker.release(second)
    assert tracker.remaining("user_basic", Channel.WHATSAPP, TODAY) == 1

    third = tracker.check_and_reserve("user_basic", Channel.WHATSAPP, TODAY)
    tracker.commit(third)
    assert tracker.remaining("user_basic", Channel.WHATSAPP, TODAY) == 0

    with pytest.raises(QuotaExceeded):
        tracker.check_and_reserve("user_basic", Channel.WHATSAPP, TODAY)


def test_monthly_reset_restores_plan_limit(db, make_user):
    make_user("user_basic", plan="basic", override=1)
    tracker = QuotaTracker(db)
    tracker.commit(tracker.check_and_reserve("user_basic", Channel.WHATSAPP, TODAY))
    assert tracker.remaining("user_basic", Channel.WHATSAPP, TODAY) == 0

    written = tracker.monthly_reset(period_for(TODAY))

    assert written == 1
    assert tracker.remaining("user_basic", Channel.WHATSAPP, TODAY) == 1


def test_new_month_starts_fresh(db, make_user):
    make_user("user_basic", plan="basic", override=1)
    tracker = QuotaTracker(db)
    tracker.commit(tracker.check_and_reserve("user_basic", Channel.WHATSAPP, TODAY))

    reservation = tracker.check_and_reserve("user_basic", Channel.WHATSAPP, date(2024, 5, 1))

    assert reservation.period == "2024-05"


def test_concurrent_reservations_for_last_unit(tmp_path):
    """Two dispatches racing for the last unit: exactly one wins"""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'quota.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    Session = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    with Session() as setup:
        setup.add(UserAccount(id="user_pro", plan="pro"))
        setup.add(
            QuotaCounter(
                user_id="user_pro",
                channel=Channel.WHATSAPP.value,
                period=period_for(TODAY),
                limit_count=1000,
                used=999,
                reserved=0,
            )
        )
        setup.commit()

    barrier = threading.Barrier(2)
    outcomes = []

    def reserve():
        with Session() as session:
            tracker = QuotaTracker(session)
            barrier.wait()
            try:
                tracker.check_and_reserve("user_pro", Channel.WHATSAPP, TODAY)
                outcomes.append("allowed")
            except QuotaExceeded:
                outcomes.append("quota_exceeded")

    threads = [threading.Thread(target=reserve) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(outcomes) == ["allowed", "quota_exceeded"]
    engine.dispose()


def test_plan_change_applies_within_the_month(db, make_user):
    user = make_user("user_basic", plan="basic", override=1)
    tracker = QuotaTracker(db)
    tracker.commit(tracker.check_and_reserve("user_basic", Channel.WHATSAPP, TODAY))
    with pytest.raises(QuotaExceeded):
        tracker.check_and_reserve("user_basic", Channel.WHATSAPP, TODAY)

    user.whatsapp_quota_override = 3
    db.commit()

    assert tracker.remaining("user_basic", Channel.WHATSAPP, TODAY) == 2
    tracker.check_and_reserve("user_basic", Channel.WHATSAPP, TODAY)
    assert db.query(QuotaCounter).one().limit_count == 3
