from datetime import date, datetime, timezone

from custom_components.smarter_melcloud.energy import (
    EnergyReport,
    calculate_cop,
    calculate_energy,
    calculate_power,
    get_report_plan,
    linked_device_count,
)
from custom_components.smarter_melcloud.mapping import ATA_MAPPING, ATW_MAPPING, ERV_MAPPING


class _FakeFacade:
    def __init__(self, data):
        self.data = data
        self.calls = []

    async def async_energy(self, from_date, to_date):
        self.calls.append((from_date, to_date))
        if isinstance(self.data, Exception):
            raise self.data
        return self.data


def _report(scheduler, mapping, capabilities, facade, total=False):
    published = []
    report = EnergyReport(
        mapping=mapping,
        total=total,
        scheduler=scheduler,
        get_facade=lambda: facade,
        get_capabilities=lambda: capabilities,
        set_values=published.append,
    )
    return report, published


def test_cop_guards_zero_consumption():
    data = {"TotalHeatingProduced": 20, "TotalHeatingConsumed": 0}
    assert calculate_cop(data, ["TotalHeatingProduced"], ["TotalHeatingConsumed"]) == 20


def test_cop_floors_fractional_consumption_at_one():
    data = {"TotalHeatingProduced": 2.0, "TotalHeatingConsumed": 0.5}
    assert calculate_cop(data, ["TotalHeatingProduced"], ["TotalHeatingConsumed"]) == 2.0


def test_cop_ratio():
    data = {"TotalHeatingProduced": 30, "TotalHeatingConsumed": 10}
    assert calculate_cop(data, ["TotalHeatingProduced"], ["TotalHeatingConsumed"]) == 3


def test_power_uses_hour_bucket_in_watts():
    data = {"Heating": [0.0] * 10 + [0.4] + [0.0] * 13, "Cooling": [0.1] * 24}
    assert calculate_power(data, ["Heating", "Cooling"], 10, 1) == 500
    assert calculate_power(data, ["Heating"], 10, 2) == 200


def test_energy_divides_by_linked_devices():
    data = {"TotalHeatingConsumed": 12.0, "TotalCoolingConsumed": 4.0}
    assert calculate_energy(data, ["TotalHeatingConsumed", "TotalCoolingConsumed"], 2) == 8


def test_linked_device_count_from_disclaimer():
    assert linked_device_count({"UsageDisclaimerPercentages": "50,25,25"}, 1) == 3
    assert linked_device_count({}, 2) == 2


def test_report_plans():
    assert get_report_plan(3, False) is None
    ata = get_report_plan(0, False)
    now = datetime(2024, 1, 15, 10, 30, 12, tzinfo=timezone.utc)
    assert ata.first_run(now) == datetime(2024, 1, 15, 11, 5, tzinfo=timezone.utc)
    atw = get_report_plan(1, False)
    assert atw.first_run(now) == datetime(2024, 1, 16, 1, 10, tzinfo=timezone.utc)
    total = get_report_plan(1, True)
    assert total.first_run(now) == datetime(2024, 1, 16, 1, 5, tzinfo=timezone.utc)


async def test_handle_with_empty_set_cancels_timers_without_fetch(scheduler):
    facade = _FakeFacade({})
    capabilities = ["meter_power.daily"]
    report, published = _report(scheduler, ATA_MAPPING, capabilities, facade)
    report.schedule()
    assert report.is_scheduled

    capabilities.clear()
    await report.async_handle()

    assert not report.is_scheduled
    assert scheduler.active() == []
    assert facade.calls == []
    assert published == []


async def test_regular_report_fetches_previous_hour(scheduler):
    hourly = [0.0] * 24
    hourly[9] = 0.25
    facade = _FakeFacade({"Heating": hourly, "TotalHeatingConsumed": 1.5})
    report, published = _report(
        scheduler, ATA_MAPPING, ["measure_power.heating", "meter_power.daily_heating", "meter_power"], facade
    )

    await report.async_handle()

    assert facade.calls == [(date(2024, 1, 15), date(2024, 1, 15))]
    assert published == [{"measure_power.heating": 250.0, "meter_power.daily_heating": 1.5}]
    assert report.is_scheduled


async def test_total_report_fetches_from_epoch(scheduler):
    facade = _FakeFacade(
        {
            "TotalHeatingProduced": 40,
            "TotalHeatingConsumed": 10,
            "UsageDisclaimerPercentages": "50,50",
        }
    )
    report, published = _report(
        scheduler, ATW_MAPPING, ["meter_power.cop_heating", "meter_power.heating"], facade, total=True
    )

    await report.async_handle()

    assert facade.calls == [(date(1970, 1, 1), date(2024, 1, 15))]
    assert report.linked_device_count == 2
    assert published == [{"meter_power.cop_heating": 4.0, "meter_power.heating": 5.0}]


async def test_report_errors_are_swallowed_and_schedule_kept(scheduler):
    facade = _FakeFacade(RuntimeError("boom"))
    report, published = _report(scheduler, ATA_MAPPING, ["meter_power.daily"], facade)

    await report.async_handle()

    assert published == []
    assert report.is_scheduled


async def test_schedule_is_idempotent_and_first_run_starts_interval(scheduler):
    facade = _FakeFacade({"TotalHeatingConsumed": 1.0})
    report, published = _report(scheduler, ATA_MAPPING, ["meter_power.daily"], facade)

    report.schedule()
    report.schedule()
    assert len(scheduler.active("at")) == 1

    await scheduler.fire("at")

    assert len(scheduler.active("every")) == 1
    assert scheduler.active("at") == []
    assert published


async def test_erv_never_schedules(scheduler):
    report, _published = _report(scheduler, ERV_MAPPING, ["onoff"], _FakeFacade({}))
    await report.async_handle()
    report.schedule()
    assert not report.is_scheduled


def test_unschedule_cancels_both_handles(scheduler):
    report, _published = _report(scheduler, ATA_MAPPING, ["meter_power"], _FakeFacade({}), total=True)
    report.schedule()
    report.unschedule()
    assert scheduler.active() == []
    assert not report.is_scheduled
