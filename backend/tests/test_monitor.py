"""Tests for the pricing monitor: metrics, alert rules and health score."""
import pytest
from datetime import timedelta

from hotel_pricing.models import (
    AlertCooldown,
    PriceApproval,
    PricingAlert,
    PricingCalculation,
    PricingEvent,
    PricingMetric,
)
from hotel_pricing.services.monitor import AlertRule, DEFAULT_ALERT_RULES, PricingMonitor
from hotel_pricing.services.system_metrics import StaticSystemMetricsProvider
from conftest import TUESDAY, OPERATOR_PHONE, TestSessionLocal


@pytest.fixture
def monitor(db_session, notifier, system_metrics, clock):
    return PricingMonitor(db_session, notifier=notifier, system_metrics=system_metrics, clock=clock)


def add_calculation(db_session, clock, status="completed", cache_hit=False, ms=None, seconds_ago=1):
    db_session.add(PricingCalculation(
        room_id="room-1",
        date=TUESDAY,
        status=status,
        cache_hit=cache_hit,
        processing_time_ms=ms,
        created_at=clock.now - timedelta(seconds=seconds_ago),
    ))
    db_session.commit()


class TestAlertRule:
    def test_operators(self):
        assert AlertRule("error_rate", 5, ">", "high", 5).is_triggered(5.1)
        assert not AlertRule("error_rate", 5, ">", "high", 5).is_triggered(5)
        assert AlertRule("cache_hit_rate", 80, "<", "medium", 10).is_triggered(79.9)
        assert AlertRule("queue_size", 0, "=", "low", 1).is_triggered(0)
        assert AlertRule("queue_size", 10, ">=", "low", 1).is_triggered(10)
        assert AlertRule("queue_size", 10, "<=", "low", 1).is_triggered(10)

    def test_message_format(self):
        rule = AlertRule("memory_usage_mb", 1024, ">", "critical", 2)
        assert rule.describe(1536.456) == "memory_usage_mb > 1024 (current: 1536.46)"

    def test_default_rules(self):
        by_metric = {rule.metric_name: rule for rule in DEFAULT_ALERT_RULES}
        assert len(by_metric) == 8
        assert by_metric["memory_usage_mb"].severity == "critical"
        assert by_metric["queue_size"].cooldown_minutes == 3
        assert by_metric["cache_hit_rate"].operator == "<"


class TestPerformanceMetrics:
    def test_idle_system(self, db_session, monitor):
        metrics = monitor.collect_performance_metrics()

        assert metrics["pricing_calculations_per_second"] == 0
        assert metrics["average_calculation_time_ms"] == 0
        assert metrics["cache_hit_rate"] == 100
        assert metrics["error_rate"] == 0
        assert metrics["queue_size"] == 0
        assert metrics["memory_usage_mb"] == 256.0
        assert metrics["cpu_usage_percent"] == 12.0

        recorded = db_session.query(PricingMetric).filter(PricingMetric.metric_type == "performance").count()
        assert recorded == len(metrics)

    def test_calculation_stats(self, db_session, monitor, clock):
        add_calculation(db_session, clock, ms=100)
        add_calculation(db_session, clock, ms=300)
        add_calculation(db_session, clock, cache_hit=True, ms=1)
        add_calculation(db_session, clock, cache_hit=True, ms=1)
        add_calculation(db_session, clock, status="failed", ms=5)
        # Outside the one minute window
        add_calculation(db_session, clock, status="failed", seconds_ago=120)

        metrics = monitor.collect_performance_metrics()

        assert metrics["pricing_calculations_per_second"] == pytest.approx(5 / 60)
        assert metrics["average_calculation_time_ms"] == pytest.approx(200)
        assert metrics["cache_hit_rate"] == pytest.approx(50)
        assert metrics["error_rate"] == pytest.approx(20)

    def test_queue_size_counts_waiting_events(self, db_session, monitor):
        db_session.add_all([
            PricingEvent(event_type="booking_change", room_id="a"),
            PricingEvent(event_type="booking_change", room_id="b", status="processing"),
            PricingEvent(event_type="booking_change", room_id="c", status="failed", retry_count=3),
            PricingEvent(event_type="booking_change", room_id="d", status="completed", processed=True),
        ])
        db_session.commit()

        assert monitor.collect_performance_metrics()["queue_size"] == 2


class TestBusinessMetrics:
    def test_business_metrics(self, db_session, monitor, make_room, clock):
        room = make_room(auto_pricing_enabled=True)
        make_room(name="Standard Twin", auto_pricing_enabled=False)
        db_session.add_all([
            PricingMetric(
                metric_type="price_change", metric_name="calculated_price", room_id=room.id,
                metric_value=550000, previous_value=500000, change_percentage=10.0, recorded_at=clock.now,
            ),
            PricingMetric(
                metric_type="price_change", metric_name="calculated_price", room_id=room.id,
                metric_value=350000, previous_value=500000, change_percentage=-30.0, recorded_at=clock.now,
            ),
            PricingMetric(
                metric_type="price_change", metric_name="calculated_price", room_id=room.id,
                metric_value=900000, previous_value=500000, change_percentage=80.0,
                recorded_at=clock.now - timedelta(hours=2),
            ),
            PriceApproval(
                room_id=room.id, old_price=500000, new_price=700000, price_change_percentage=40.0,
                status="pending", created_at=clock.now,
            ),
            PriceApproval(
                room_id=room.id, old_price=500000, new_price=520000, price_change_percentage=4.0,
                status="auto_approved", auto_approve=True, created_at=clock.now,
            ),
        ])
        db_session.commit()

        metrics = monitor.collect_business_metrics()

        assert metrics["total_rooms"] == 2
        assert metrics["rooms_with_auto_pricing"] == 1
        assert metrics["average_price_change_percentage"] == pytest.approx(20.0)
        assert metrics["price_updates_per_hour"] == pytest.approx(2.0)
        assert metrics["approval_rate"] == pytest.approx(50.0)
        assert metrics["revenue_impact_estimate"] == pytest.approx(-100000)

    def test_no_activity(self, monitor):
        metrics = monitor.collect_business_metrics()

        assert metrics["average_price_change_percentage"] == 0
        assert metrics["approval_rate"] == 0
        assert metrics["revenue_impact_estimate"] == 0


class TestAlerts:
    @pytest.fixture
    def queue_monitor(self, db_session, notifier, system_metrics, clock, hotel):
        rule = AlertRule("queue_size", 10, ">", "medium", 5)
        return PricingMonitor(
            db_session, notifier=notifier, system_metrics=system_metrics, rules=[rule], clock=clock
        )

    async def test_breach_raises_and_notifies(self, db_session, queue_monitor, notifier):
        raised = await queue_monitor.check_alerts({"queue_size": 25})

        assert len(raised) == 1
        alert = db_session.query(PricingAlert).one()
        assert alert.is_active is True
        assert alert.severity == "medium"
        assert alert.message == "queue_size > 10 (current: 25.00)"
        assert notifier.of_kind("alert") == [
            {"kind": "alert", "metric_name": "queue_size", "phone": OPERATOR_PHONE}
        ]

    async def test_cooldown_suppresses_repeat(self, db_session, queue_monitor, notifier, clock):
        await queue_monitor.check_alerts({"queue_size": 25})
        clock.advance(minutes=2)

        raised = await queue_monitor.check_alerts({"queue_size": 40})

        assert raised == []
        assert len(notifier.of_kind("alert")) == 1
        assert db_session.query(PricingAlert).one().current_value == 25

    async def test_repeat_after_cooldown_refreshes_same_alert(self, db_session, queue_monitor, notifier, clock):
        await queue_monitor.check_alerts({"queue_size": 25})
        clock.advance(minutes=6)

        raised = await queue_monitor.check_alerts({"queue_size": 40})

        assert len(raised) == 1
        alert = db_session.query(PricingAlert).one()
        assert alert.current_value == 40
        assert alert.triggered_at == clock.now
        assert len(notifier.of_kind("alert")) == 2
        assert db_session.query(AlertCooldown).one().last_triggered_at == clock.now

    async def test_recovery_resolves_alert(self, db_session, queue_monitor, clock):
        await queue_monitor.check_alerts({"queue_size": 25})
        clock.advance(minutes=1)

        await queue_monitor.check_alerts({"queue_size": 3})

        alert = db_session.query(PricingAlert).one()
        assert alert.is_active is False
        assert alert.resolved_at == clock.now
        assert queue_monitor.get_active_alerts() == []

    async def test_disabled_rule_ignored(self, db_session, notifier, system_metrics, clock):
        rule = AlertRule("queue_size", 10, ">", "medium", 5, enabled=False)
        monitor = PricingMonitor(db_session, notifier=notifier, system_metrics=system_metrics, rules=[rule], clock=clock)

        assert await monitor.check_alerts({"queue_size": 500}) == []
        assert db_session.query(PricingAlert).count() == 0

    def test_cooldown_stamped_from_two_sessions(self, db_session, system_metrics, clock):
        """Two monitors breaching at once leave a single cooldown row holding the later time."""
        other = TestSessionLocal()
        try:
            first = PricingMonitor(db_session, system_metrics=system_metrics, clock=clock)
            second = PricingMonitor(other, system_metrics=system_metrics, clock=clock)

            first._stamp_cooldown("queue_size", clock.now)
            second._stamp_cooldown("queue_size", clock.now + timedelta(seconds=5))
            db_session.commit()
            other.commit()
        finally:
            other.close()

        cooldown = db_session.query(AlertCooldown).one()
        assert cooldown.metric_name == "queue_size"
        assert cooldown.last_triggered_at == clock.now + timedelta(seconds=5)


class TestSystemHealth:
    async def test_healthy_when_idle(self, monitor):
        health = await monitor.get_system_health()

        assert health["status"] == "healthy"
        assert health["health_score"] == 100
        assert health["active_alerts"] == []
        assert "performance_metrics" in health
        assert "business_metrics" in health

    async def test_alerts_lower_the_score(self, db_session, notifier, clock, hotel):
        monitor = PricingMonitor(
            db_session,
            notifier=notifier,
            system_metrics=StaticSystemMetricsProvider(memory_mb=2048.0, cpu_percent=90.0),
            clock=clock,
        )

        health = await monitor.get_system_health()

        # critical memory (25) + high cpu (15)
        assert health["health_score"] == 60
        assert health["status"] == "warning"
        assert {a["metric_name"] for a in health["active_alerts"]} == {"memory_usage_mb", "cpu_usage_percent"}

    async def test_error_rate_and_cache_misses_penalised(self, db_session, monitor, clock):
        add_calculation(db_session, clock, ms=50)
        add_calculation(db_session, clock, status="failed")

        health = await monitor.get_system_health()

        # error_rate 50 (high alert 15, penalty 20), cache_hit_rate 0 (medium alert 10, penalty 15)
        assert health["health_score"] == 40
        assert health["status"] == "critical"


class TestMetricsHistory:
    def test_history_oldest_first_within_window(self, db_session, monitor, clock):
        monitor.collect_performance_metrics()
        clock.advance(hours=2)
        monitor.collect_performance_metrics()
        clock.advance(minutes=30)
        monitor.collect_performance_metrics()

        history = monitor.get_metrics_history("queue_size", hours=1)

        assert len(history) == 2
        assert history[0]["recorded_at"] < history[1]["recorded_at"]
        assert history[-1]["recorded_at"] == clock.now.isoformat()

    def test_unknown_metric(self, monitor):
        assert monitor.get_metrics_history("nope") == []
