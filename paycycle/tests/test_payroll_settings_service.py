from datetime import date

import pytest

from paycycle.core.errors import DateOrderError, InvalidCycleType, NotFound, ValidationError
from paycycle.database import SessionLocal
from paycycle.models.pay_period import PayPeriod
from paycycle.models.payroll_cycle_setting import PayrollCycleSetting
from paycycle.services import payroll_run_service
from paycycle.services.payroll_settings_service import (
    create_settings,
    get_settings,
    list_settings,
    schedule_periods,
    update_settings,
)


def _periods(settings_id: int):
    db = SessionLocal()
    try:
        return (
            db.query(PayPeriod)
            .filter(PayPeriod.settings_id == settings_id)
            .order_by(PayPeriod.from_date.asc())
            .all()
        )
    finally:
        db.close()


def _semimonthly_kwargs(**overrides):
    kwargs = dict(
        company_id=1,
        name="Semi",
        cycle_type="SemiMonthly",
        from_date=date(2024, 1, 1),
        to_date=date(2024, 1, 15),
        check_date=date(2024, 1, 15),
        actual_check_date=date(2024, 1, 15),
        second_from_date=date(2024, 1, 16),
        second_to_date=date(2024, 1, 31),
        second_check_date=date(2024, 1, 31),
        second_actual_check_date=date(2024, 1, 31),
    )
    kwargs.update(overrides)
    return kwargs


def test_create_settings_seeds_first_period(make_settings):
    setting = make_settings()

    assert setting.cycle_type == "Weekly"
    periods = _periods(setting.id)
    assert len(periods) == 1
    assert periods[0].status == "YetToGenerate"
    assert periods[0].from_date == date(2024, 1, 1)
    assert periods[0].to_date == date(2024, 1, 7)
    assert periods[0].check_date == date(2024, 1, 5)
    assert periods[0].actual_check_date == date(2024, 1, 7)


def test_create_settings_rejects_mismatched_to_date(make_settings):
    with pytest.raises(DateOrderError):
        make_settings(to_date=date(2024, 1, 8))

    db = SessionLocal()
    try:
        assert db.query(PayrollCycleSetting).count() == 0
        assert db.query(PayPeriod).count() == 0
    finally:
        db.close()


def test_create_settings_rejects_bad_check_date(make_settings):
    with pytest.raises(DateOrderError):
        make_settings(check_date=date(2024, 1, 4))


def test_create_settings_rejects_unknown_cycle_type(make_settings):
    with pytest.raises(InvalidCycleType):
        make_settings(cycle_type="Daily")


def test_settings_name_is_unique_per_company(make_settings):
    make_settings(name="Crew")

    with pytest.raises(ValidationError):
        make_settings(name="Crew")

    other = make_settings(company_id=2, name="Crew")
    assert other.company_id == 2


def test_semimonthly_settings_require_consistent_second_half():
    setting = create_settings(**_semimonthly_kwargs())
    assert setting.second_from_date == date(2024, 1, 16)

    with pytest.raises(ValidationError):
        create_settings(**_semimonthly_kwargs(name="Semi 2", second_check_date=None))

    with pytest.raises(DateOrderError):
        create_settings(**_semimonthly_kwargs(name="Semi 3", second_from_date=date(2024, 1, 17)))

    with pytest.raises(DateOrderError):
        # 2024-01-31 is a Wednesday; the check date must equal it.
        create_settings(**_semimonthly_kwargs(name="Semi 4", second_check_date=date(2024, 1, 30)))


def test_second_half_dates_are_rejected_for_other_cycles(make_settings):
    with pytest.raises(ValidationError):
        make_settings(second_from_date=date(2024, 1, 8))


def test_schedule_periods_creates_periods_up_to_date(make_settings):
    setting = make_settings()

    created = schedule_periods(company_id=1, settings_id=setting.id, through=date(2024, 2, 4))

    assert [p.from_date for p in created] == [
        date(2024, 1, 8),
        date(2024, 1, 15),
        date(2024, 1, 22),
        date(2024, 1, 29),
    ]
    assert all(p.status == "YetToGenerate" for p in created)
    # Sunday actual check date, Friday check date.
    assert created[0].actual_check_date == date(2024, 1, 14)
    assert created[0].check_date == date(2024, 1, 12)

    again = schedule_periods(company_id=1, settings_id=setting.id, through=date(2024, 2, 4))
    assert again == []
    assert len(_periods(setting.id)) == 5


def test_schedule_periods_is_capped(make_settings, monkeypatch):
    monkeypatch.setenv("MAX_SCHEDULED_PERIODS", "3")
    setting = make_settings()

    created = schedule_periods(company_id=1, settings_id=setting.id, through=date(2024, 12, 31))
    assert len(created) == 3


def test_schedule_periods_semimonthly_uses_second_half_check_offset():
    setting = create_settings(
        **_semimonthly_kwargs(second_actual_check_date=date(2024, 2, 2), second_check_date=date(2024, 2, 2))
    )

    created = schedule_periods(company_id=1, settings_id=setting.id, through=date(2024, 2, 29))

    assert [(p.from_date, p.to_date) for p in created] == [
        (date(2024, 1, 16), date(2024, 1, 31)),
        (date(2024, 2, 1), date(2024, 2, 15)),
        (date(2024, 2, 16), date(2024, 2, 29)),
    ]
    # second halves are paid two days after close
    assert created[0].actual_check_date == date(2024, 2, 2)
    assert created[1].actual_check_date == date(2024, 2, 15)
    # 2024-03-02 is a Saturday
    assert created[2].actual_check_date == date(2024, 3, 2)
    assert created[2].check_date == date(2024, 3, 1)


def test_update_settings_replaces_ungenerated_periods(make_settings):
    setting = make_settings()
    schedule_periods(company_id=1, settings_id=setting.id, through=date(2024, 1, 21))
    assert len(_periods(setting.id)) == 3

    update_settings(
        company_id=1,
        settings_id=setting.id,
        name="Weekly crew",
        cycle_type="Weekly",
        from_date=date(2024, 1, 3),
        to_date=date(2024, 1, 9),
        check_date=date(2024, 1, 9),
        actual_check_date=date(2024, 1, 9),
    )

    periods = _periods(setting.id)
    assert [(p.from_date, p.status) for p in periods] == [(date(2024, 1, 3), "YetToGenerate")]


def test_update_settings_keeps_drafted_periods(make_settings):
    setting = make_settings()
    drafted = payroll_run_service.generate_for_settings(setting.id, company_id=1)

    update_settings(
        company_id=1,
        settings_id=setting.id,
        name="Renamed",
        cycle_type="Weekly",
        from_date=date(2024, 1, 8),
        to_date=date(2024, 1, 14),
        check_date=date(2024, 1, 12),
        actual_check_date=date(2024, 1, 14),
    )

    periods = _periods(setting.id)
    assert [p.id for p in periods] == [drafted.id]
    assert periods[0].status == "Drafted"
    assert get_settings(company_id=1, settings_id=setting.id).name == "Renamed"


def test_update_settings_from_edit_date_keeps_earlier_periods(make_settings):
    setting = make_settings()
    schedule_periods(company_id=1, settings_id=setting.id, through=date(2024, 1, 21))

    update_settings(
        company_id=1,
        settings_id=setting.id,
        name="Weekly crew",
        cycle_type="Weekly",
        from_date=date(2024, 1, 1),
        to_date=date(2024, 1, 7),
        check_date=date(2024, 1, 5),
        actual_check_date=date(2024, 1, 7),
        edit_from_date=date(2024, 1, 8),
    )

    assert [p.from_date for p in _periods(setting.id)] == [date(2024, 1, 1)]


def test_settings_are_scoped_by_company(make_settings):
    setting = make_settings(company_id=1)
    make_settings(company_id=2, name="Other")

    assert [s.id for s in list_settings(company_id=1)] == [setting.id]
    with pytest.raises(NotFound):
        get_settings(company_id=2, settings_id=setting.id)
