# coopbus/costing/services.py

"""
Service cost estimation and service cost record lifecycle.

The estimator turns a route and departure into an operating cost built from
driver wages, fuel, vehicle running costs and admin overhead. Distance and
duration come from an injected provider; when the provider cannot answer the
estimate falls back to fixed values instead of failing.
"""

from datetime import date, datetime, time, timezone
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Optional, Union

from fastapi import Depends

from coopbus.core.config import settings
from coopbus.costing.exceptions import ExternalProviderUnavailable
from coopbus.costing.providers import DistanceProvider, RouteMetrics, get_distance_provider
from coopbus.costing.schemas import (
    CostBreakdown, CostEstimate, CostInsights, DemandPrediction, RouteInfo,
)
from coopbus.operations.models import Timetable, VehicleType
from coopbus.operations.repository import OperationsRepository
from coopbus.surplus.exceptions import ServiceNotFoundException
from coopbus.surplus.models import ServiceCostRecord, SubsidySource
from coopbus.surplus.services import SurplusLedgerService
from coopbus.utils.logger import get_logger
from coopbus.utils.money import ZERO, percent_of, round_money, to_decimal

logger = get_logger(__name__)

METERS_PER_MILE = Decimal("1609.34")
LITERS_PER_GALLON = Decimal("4.546")
SERVICES_PER_YEAR = Decimal("250")

PEAK_HOURS = (range(7, 10), range(16, 19))
PEAK_DURATION_BUFFER = Decimal("0.20")
OFF_PEAK_DURATION_BUFFER = Decimal("0.10")

WINTER_MONTHS = (12, 1, 2, 3)
SUMMER_MONTHS = (7, 8, 9)
SUMMER_HOLIDAY_MONTHS = (8, 9)

# Per-mile depreciation and maintenance, annual insurance
VEHICLE_COST_PROFILES = {
    VehicleType.MINIBUS.value: (Decimal("0.30"), Decimal("0.15"), Decimal("1800")),
    VehicleType.BUS.value: (Decimal("0.50"), Decimal("0.25"), Decimal("3000")),
}

# Fare used for the recommended passenger figure in forecast insights
INSIGHT_REFERENCE_FARE = Decimal("15")


def departure_hour(departure_time: Union[time, str, None]) -> Optional[int]:
    """Hour of a departure given as a time or an "HH:MM" string, None when unreadable"""
    if departure_time is None:
        return None
    if isinstance(departure_time, time):
        return departure_time.hour
    try:
        hour = int(str(departure_time).split(":")[0])
    except ValueError:
        logger.warning("Unreadable departure time", departure_time=str(departure_time))
        return None
    return hour if 0 <= hour <= 23 else None


def is_peak_hour(hour: Optional[int]) -> bool:
    return hour is not None and any(hour in hours for hours in PEAK_HOURS)


def seasonal_fuel_factor(service_date: date) -> Decimal:
    """Fuel consumption multiplier for the month of service"""
    if service_date.month in WINTER_MONTHS:
        return Decimal("1.15")
    if service_date.month in SUMMER_MONTHS:
        return Decimal("0.95")
    return Decimal("1.0")


def predict_passenger_demand(
    service_date: date,
    departure_time: Union[time, str, None],
    historical_averages: Optional[dict] = None,
) -> DemandPrediction:
    """
    Estimate passenger demand for a service from calendar patterns.

    Args:
        service_date: Day of service
        departure_time: Departure time of the service
        historical_averages: Optional {"weekday_avg": n, "weekend_avg": n}

    Returns:
        DemandPrediction with the rounded demand, a confidence level and the
        adjustments that were applied
    """
    hour = departure_hour(departure_time)
    is_weekend = service_date.weekday() >= 5
    reasoning = []

    demand = 12.0
    confidence = 0.5

    if historical_averages:
        key = "weekend_avg" if is_weekend else "weekday_avg"
        demand = float(historical_averages[key])
        confidence = 0.8
        reasoning.append(f"Based on historical {'weekend' if is_weekend else 'weekday'} average")

    if is_weekend:
        demand *= 0.6
        reasoning.append("Weekend service - typically lower demand")

    if hour is not None:
        if 7 <= hour <= 9:
            demand *= 1.3
            confidence = min(confidence + 0.1, 0.95)
            reasoning.append("Morning peak hours - increased demand expected")
        elif 16 <= hour <= 18:
            demand *= 1.2
            reasoning.append("Evening peak hours - increased demand expected")
        elif hour < 7 or hour > 20:
            demand *= 0.5
            reasoning.append("Off-peak hours - reduced demand expected")

    if service_date.month in WINTER_MONTHS:
        demand *= 0.9
        reasoning.append("Winter season - small reduction in demand")
    elif service_date.month in SUMMER_HOLIDAY_MONTHS:
        demand *= 0.8
        reasoning.append("Summer holiday period - reduced commuter demand")

    return DemandPrediction(
        predicted_demand=int(Decimal(str(demand)).to_integral_value(rounding=ROUND_HALF_UP)),
        confidence_level=round(confidence, 2),
        reasoning=reasoning,
    )


class ServiceCostEstimator:
    """
    Estimates the operating cost of a service.

    All rates default to the application settings and may be overridden per
    instance.
    """

    def __init__(
        self,
        provider: DistanceProvider,
        driver_hourly_rate=None,
        fuel_price_per_liter=None,
        vehicle_mpg=None,
        overhead_percent=None,
    ):
        self.provider = provider
        self.driver_hourly_rate = to_decimal(
            driver_hourly_rate if driver_hourly_rate is not None else settings.driver_hourly_rate
        )
        self.fuel_price_per_liter = to_decimal(
            fuel_price_per_liter if fuel_price_per_liter is not None else settings.fuel_price_per_liter
        )
        self.vehicle_mpg = to_decimal(vehicle_mpg if vehicle_mpg is not None else settings.vehicle_mpg)
        self.overhead_percent = to_decimal(
            overhead_percent if overhead_percent is not None else settings.admin_overhead_percent
        )
        self.fallback_duration_hours = to_decimal(settings.fallback_duration_hours)
        self.fallback_distance_miles = to_decimal(settings.fallback_distance_miles)

    def lookup_metrics(self, origin: str, destination: str) -> Optional[RouteMetrics]:
        """One provider call; None when the provider is unavailable"""
        try:
            return self.provider.lookup(origin, destination)
        except ExternalProviderUnavailable as e:
            logger.warning("Distance provider unavailable, using fallback estimates", error=str(e))
        except Exception as e:
            logger.warning(
                "Distance provider failed, using fallback estimates",
                error=str(e), error_type=type(e).__name__,
            )
        return None

    def estimate_cost(
        self,
        route_id: Optional[int],
        origin: str,
        destination: str,
        service_date: date,
        departure_time: Union[time, str, None] = None,
        vehicle_type: str = VehicleType.MINIBUS.value,
        include_insights: bool = True,
        max_acceptable_fare=None,
    ) -> CostEstimate:
        """
        Estimate the operating cost of one service.

        Never raises for provider failures: without metrics the duration is
        the fallback hours with no delay buffer, the distance is the fallback
        miles and no seasonal fuel adjustment is made.
        """
        metrics = self.lookup_metrics(origin, destination)
        hour = departure_hour(departure_time)

        # === Driver wages ===
        if metrics is None:
            duration_hours = self.fallback_duration_hours
            buffer_applied = False
        else:
            buffer = PEAK_DURATION_BUFFER if is_peak_hour(hour) else OFF_PEAK_DURATION_BUFFER
            duration_hours = to_decimal(metrics.duration_seconds) / Decimal("3600") * (1 + buffer)
            buffer_applied = True
        driver_wages = duration_hours * self.driver_hourly_rate

        # === Fuel ===
        if metrics is None:
            distance_miles = self.fallback_distance_miles
            seasonal_factor = Decimal("1.0")
        else:
            distance_miles = to_decimal(metrics.distance_meters) / METERS_PER_MILE
            seasonal_factor = seasonal_fuel_factor(service_date)
        adjusted_mpg = self.vehicle_mpg / seasonal_factor
        fuel_cost = distance_miles / adjusted_mpg * LITERS_PER_GALLON * self.fuel_price_per_liter

        # === Vehicle running costs ===
        depreciation_rate, maintenance_rate, annual_insurance = VEHICLE_COST_PROFILES.get(
            vehicle_type, VEHICLE_COST_PROFILES[VehicleType.MINIBUS.value]
        )
        depreciation = distance_miles * depreciation_rate
        maintenance = distance_miles * maintenance_rate
        insurance = annual_insurance / SERVICES_PER_YEAR

        # === Overhead and total ===
        base_cost = driver_wages + fuel_cost + depreciation + maintenance + insurance
        overhead = percent_of(base_cost, self.overhead_percent)
        total_cost = base_cost + overhead

        max_fare = to_decimal(
            max_acceptable_fare if max_acceptable_fare is not None else settings.default_maximum_acceptable_fare
        )
        minimum_passengers = int((total_cost / max_fare).to_integral_value(rounding=ROUND_CEILING))

        insights = None
        if include_insights:
            demand = predict_passenger_demand(service_date, departure_time)
            insights = CostInsights(
                predicted_demand=demand.predicted_demand,
                confidence_level=demand.confidence_level,
                seasonal_adjustment_factor=seasonal_factor,
                traffic_delay_probability=Decimal("0.20") if buffer_applied else Decimal("0.10"),
                recommended_minimum_passengers=int(
                    (total_cost / INSIGHT_REFERENCE_FARE).to_integral_value(rounding=ROUND_CEILING)
                ),
            )

        logger.info(
            "Estimated service cost",
            route_id=route_id,
            service_date=str(service_date),
            vehicle_type=vehicle_type,
            total_cost=str(round_money(total_cost)),
            fallback=metrics is None,
        )

        return CostEstimate(
            service_date=service_date,
            vehicle_type=vehicle_type,
            route_info=RouteInfo(
                route_id=route_id,
                origin=origin,
                destination=destination,
                distance_miles=round_money(distance_miles),
                duration_minutes=int((duration_hours * 60).to_integral_value(rounding=ROUND_HALF_UP)),
                ai_buffer_applied=buffer_applied,
                provider_available=metrics is not None,
            ),
            cost_breakdown=CostBreakdown(
                driver_wages=round_money(driver_wages),
                fuel_cost=round_money(fuel_cost),
                vehicle_depreciation=round_money(depreciation),
                vehicle_maintenance_allocation=round_money(maintenance),
                insurance_allocation=round_money(insurance),
                admin_overhead=round_money(overhead),
                other_costs=ZERO,
                total_cost=round_money(total_cost),
            ),
            minimum_passengers_needed=minimum_passengers,
            ai_insights=insights,
        )

    def estimate_for_timetable(self, timetable: Timetable, service_date: date) -> CostEstimate:
        """Estimate a scheduled service using its route's configuration"""
        route = timetable.route
        return self.estimate_cost(
            route_id=route.id,
            origin=route.origin_point,
            destination=route.destination_point,
            service_date=service_date,
            departure_time=timetable.departure_time,
            vehicle_type=route.vehicle_type,
            max_acceptable_fare=route.maximum_acceptable_fare,
        )


def get_cost_estimator(
    provider: DistanceProvider = Depends(get_distance_provider),
) -> ServiceCostEstimator:
    """Dependency to get a ServiceCostEstimator using the configured provider."""
    return ServiceCostEstimator(provider)


class ServiceCostService:
    """Creates and reconciles service cost records"""

    def __init__(
        self,
        ledger: SurplusLedgerService = Depends(SurplusLedgerService),
        estimator: ServiceCostEstimator = Depends(get_cost_estimator),
    ):
        self.ledger = ledger
        self.estimator = estimator
        self.repo = ledger.repo
        self.operations = OperationsRepository(ledger.repo.db)

    def get_record(self, timetable_id: int, service_date: date) -> Optional[ServiceCostRecord]:
        return self.repo.get_service_cost(timetable_id, service_date)

    def record_estimate(
        self,
        tenant_id: int,
        timetable_id: int,
        service_date: date,
        estimate: Optional[CostEstimate] = None,
    ) -> ServiceCostRecord:
        """
        Store the estimated cost of a service instance.

        Returns the existing record unchanged when the service already has
        one. Without an estimate the timetable's route is estimated first,
        before any write is made.
        """
        existing = self.repo.get_service_cost(timetable_id, service_date)
        if existing is not None:
            logger.info(
                "Service cost already recorded",
                timetable_id=timetable_id, service_date=str(service_date), cost_id=existing.id,
            )
            return existing

        timetable = self.operations.get_timetable(timetable_id, tenant_id)
        if timetable is None:
            raise ServiceNotFoundException(timetable_id)

        if estimate is None:
            estimate = self.estimator.estimate_for_timetable(timetable, service_date)

        breakdown = estimate.cost_breakdown
        try:
            record = self.repo.create_service_cost(ServiceCostRecord(
                tenant_id=tenant_id,
                route_id=timetable.route_id,
                timetable_id=timetable_id,
                service_date=service_date,
                driver_wages=breakdown.driver_wages,
                fuel_cost=breakdown.fuel_cost,
                vehicle_depreciation=breakdown.vehicle_depreciation,
                vehicle_maintenance_allocation=breakdown.vehicle_maintenance_allocation,
                insurance_allocation=breakdown.insurance_allocation,
                admin_overhead=breakdown.admin_overhead,
                other_costs=breakdown.other_costs,
                total_cost=breakdown.total_cost,
                subsidy_applied=ZERO,
                subsidy_source=SubsidySource.NONE.value,
                effective_cost=breakdown.total_cost,
                distance_miles=estimate.route_info.distance_miles,
                duration_minutes=estimate.route_info.duration_minutes,
                ai_buffer_applied=estimate.route_info.ai_buffer_applied,
            ))
            self.repo.commit()
            return record
        except Exception as e:
            self.repo.rollback()
            logger.error(
                "Failed to record service cost",
                timetable_id=timetable_id, service_date=str(service_date), error=str(e),
            )
            raise

    def reconcile_revenue(
        self,
        timetable_id: int,
        service_date: date,
        total_revenue: Decimal,
        actual_passengers: int,
    ) -> ServiceCostRecord:
        """
        Record the final takings of a completed service.

        Fills total_revenue, gross_surplus and net_surplus. When the route has
        a surplus pool its lifetime counters are updated in the same unit of
        work. The pool row and then the cost record are locked before the
        reconciled flag is read, so a record is reconciled at most once.
        """
        record = self.repo.get_service_cost(timetable_id, service_date)
        if record is None:
            raise ServiceNotFoundException(timetable_id, service_date)

        revenue = round_money(total_revenue)
        try:
            # Pool before record, the lock order used by subsidy draws
            pool = self.repo.get_pool_for_update(record.route_id)
            record = self.repo.get_service_cost(timetable_id, service_date, for_update=True)

            if record.revenue_reconciled:
                self.repo.rollback()
                logger.warning(
                    "Service revenue already reconciled",
                    timetable_id=timetable_id, service_date=str(service_date), cost_id=record.id,
                )
                return record

            total_cost = to_decimal(record.total_cost)
            record.total_revenue = revenue
            record.actual_passengers = actual_passengers
            record.gross_surplus = revenue - total_cost
            record.net_surplus = revenue - to_decimal(record.effective_cost)
            record.revenue_reconciled = True
            if pool is not None:
                self.ledger.record_service_outcome(pool, revenue, total_cost, service_date)
                pool.last_updated = datetime.now(timezone.utc)
            self.repo.commit()
        except Exception as e:
            self.repo.rollback()
            logger.error("Failed to reconcile service revenue", cost_id=record.id, error=str(e))
            raise

        logger.info(
            "Service revenue reconciled",
            cost_id=record.id,
            total_revenue=str(revenue),
            gross_surplus=str(record.gross_surplus),
            net_surplus=str(record.net_surplus),
            pool_updated=pool is not None,
        )
        return record
