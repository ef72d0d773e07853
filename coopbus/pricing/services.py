# coopbus/pricing/services.py

"""
Dynamic Pricing Engine.

Fares are cost based: the effective cost of a service (after any surplus
subsidy) is shared by the passengers booked so far, so the fare falls as the
service fills up until it reaches the route's minimum fare floor. Beyond the
floor, extra passengers generate surplus instead of lowering the fare.
"""

from datetime import date
from decimal import Decimal
from typing import Optional, Tuple

from fastapi import Depends

from coopbus.costing.services import ServiceCostEstimator, get_cost_estimator
from coopbus.members.services import MemberService
from coopbus.operations.models import Timetable
from coopbus.operations.repository import OperationsRepository
from coopbus.pricing.schemas import (
    BookingInfo, BookingPrice, PriceCostBreakdown, PriceQuote, PricingDetails, ServiceInfo, SurplusInfo,
)
from coopbus.subsidy.services import SubsidyService, minimum_passengers
from coopbus.surplus.exceptions import ServiceNotFoundException
from coopbus.surplus.services import SurplusLedgerService
from coopbus.utils.logger import get_logger
from coopbus.utils.money import HUNDRED, ZERO, round_money, to_decimal

logger = get_logger(__name__)


class DynamicPricingEngine:
    """Quotes the current fare of a service instance"""

    def __init__(
        self,
        ledger: SurplusLedgerService = Depends(SurplusLedgerService),
        estimator: ServiceCostEstimator = Depends(get_cost_estimator),
        members: MemberService = Depends(MemberService),
    ):
        self.ledger = ledger
        self.subsidy = SubsidyService(ledger)
        self.estimator = estimator
        self.members = members
        self.operations = OperationsRepository(ledger.repo.db)

    def calculate_current_price(self, tenant_id: int, timetable_id: int, service_date: date) -> PriceQuote:
        """
        Quote the fare of a service given the bookings made so far.

        With no bookings the fare is the route's maximum acceptable fare.
        Otherwise it is effective cost / bookings, clamped to the fare floor.
        Member and non-member prices are rounded to cents only here.

        Raises:
            ServiceNotFoundException: The timetable does not exist for the tenant
        """
        timetable = self.operations.get_timetable(timetable_id, tenant_id)
        if timetable is None:
            raise ServiceNotFoundException(timetable_id)
        route = timetable.route

        current_bookings = self.operations.count_active_bookings(timetable_id, service_date)
        total_cost, subsidy_applied, effective_cost = self._service_costs(timetable, service_date)

        minimum_floor = to_decimal(route.minimum_fare_floor)
        max_fare = to_decimal(route.maximum_acceptable_fare)
        surcharge_percent = to_decimal(route.non_member_surcharge_percent or ZERO)

        floor_reached = False
        if current_bookings > 0:
            base_price = effective_cost / current_bookings
            if base_price < minimum_floor:
                base_price = minimum_floor
                floor_reached = True
        else:
            base_price = max_fare

        member_price = round_money(base_price)
        non_member_price = round_money(base_price * (1 + surcharge_percent / HUNDRED))

        minimum_needed = minimum_passengers(total_cost, max_fare)
        minimum_with_subsidy = minimum_passengers(effective_cost, max_fare)
        is_viable = current_bookings >= minimum_with_subsidy

        surplus_info = None
        if route.use_surplus_smoothing:
            pool = self.ledger.get_pool(route.id)
            if pool is not None:
                surplus_info = SurplusInfo(
                    pool_balance=round_money(pool.available_for_subsidy),
                    subsidy_available=round_money(subsidy_applied),
                    passengers_saved=minimum_needed - minimum_with_subsidy,
                )

        capacity = (timetable.total_seats or 0) + (timetable.wheelchair_spaces or 0)

        quote = PriceQuote(
            service_info=ServiceInfo(
                timetable_id=timetable.id,
                service_date=service_date,
                route_id=route.id,
                route_number=route.route_number,
                pricing_model=route.pricing_model,
            ),
            cost_breakdown=PriceCostBreakdown(
                total_cost=round_money(total_cost),
                subsidy_applied=round_money(subsidy_applied),
                effective_cost=round_money(effective_cost),
            ),
            booking_info=BookingInfo(
                current_bookings=current_bookings,
                total_capacity=capacity,
                minimum_passengers_needed=minimum_needed,
                minimum_with_subsidy=minimum_with_subsidy,
                spaces_remaining=capacity - current_bookings,
            ),
            pricing=PricingDetails(
                base_price_per_passenger=base_price,
                member_price=member_price,
                non_member_price=non_member_price,
                non_member_surcharge_percent=surcharge_percent,
                minimum_fare_floor=minimum_floor,
                floor_reached=floor_reached,
                is_viable=is_viable,
            ),
            surplus_info=surplus_info,
            message=self._message(is_viable, floor_reached, member_price,
                                  minimum_with_subsidy - current_bookings, surplus_info),
        )

        logger.debug(
            "Calculated current price",
            tenant_id=tenant_id, timetable_id=timetable_id, service_date=str(service_date),
            bookings=current_bookings, member_price=str(member_price), floor_reached=floor_reached,
        )
        return quote

    def get_price_for_booking(
        self,
        tenant_id: int,
        timetable_id: int,
        service_date: date,
        customer_id: Optional[int] = None,
    ) -> BookingPrice:
        """Fare for a new booking: member price for active members, else non-member price"""
        quote = self.calculate_current_price(tenant_id, timetable_id, service_date)
        is_member = self.members.is_active_member(tenant_id, customer_id)
        price = quote.pricing.member_price if is_member else quote.pricing.non_member_price
        return BookingPrice(price=price, is_member=is_member, pricing_details=quote)

    def _service_costs(self, timetable: Timetable, service_date: date) -> Tuple[Decimal, Decimal, Decimal]:
        """Total cost, subsidy and effective cost from the stored record or a fresh estimate"""
        record = self.ledger.repo.get_service_cost(timetable.id, service_date)
        if record is not None:
            total_cost = to_decimal(record.total_cost)
            subsidy_applied = to_decimal(record.subsidy_applied)
            effective_cost = to_decimal(record.effective_cost) if record.effective_cost is not None else total_cost
            return total_cost, subsidy_applied, effective_cost

        route = timetable.route
        estimate = self.estimator.estimate_for_timetable(timetable, service_date)
        total_cost = estimate.cost_breakdown.total_cost

        if not route.use_surplus_smoothing:
            return total_cost, ZERO, total_cost

        calculation = self.subsidy.calculate_available_subsidy(
            route.id,
            total_cost,
            max_surplus_percent=route.max_surplus_subsidy_percent,
            max_service_percent=route.max_service_subsidy_percent,
            max_acceptable_fare=route.maximum_acceptable_fare,
        )
        return total_cost, calculation.subsidy_applied, total_cost - calculation.subsidy_applied

    @staticmethod
    def _message(
        is_viable: bool,
        floor_reached: bool,
        member_price: Decimal,
        passengers_short: int,
        surplus_info: Optional[SurplusInfo],
    ) -> str:
        if is_viable:
            if floor_reached:
                return (
                    f"Service is viable! Price has reached minimum floor of £{member_price}. "
                    "Additional passengers generate surplus."
                )
            return f"Service is viable! Current price: £{member_price} per passenger."

        noun = "passenger" if passengers_short == 1 else "passengers"
        message = f"Need {passengers_short} more {noun} to reach break-even."
        if surplus_info is not None and surplus_info.passengers_saved > 0:
            message += f" Surplus saved {surplus_info.passengers_saved} passengers!"
        return message
