"""
app/seed/inventory.py

Hard-coded dashboard inventory: the seven sections and a representative
metric set for each. Seeded through the regular ingestion pipeline.
"""

from __future__ import annotations

from app.domain.metric_record import MetricRecord, SectionRecord

INVENTORY_SECTIONS: tuple[SectionRecord, ...] = (
    SectionRecord(section_key="executive", section_name="Executive Summary", display_order=1),
    SectionRecord(section_key="financial", section_name="Financial Analytics", display_order=2),
    SectionRecord(section_key="operational", section_name="Operational Analytics", display_order=3),
    SectionRecord(section_key="programs", section_name="Programs Analytics", display_order=4),
    SectionRecord(section_key="stakeholders", section_name="Stakeholder Analytics", display_order=5),
    SectionRecord(section_key="scenarios", section_name="Scenario Analysis", display_order=6),
    SectionRecord(section_key="global_signals", section_name="Global Signals", display_order=7),
)


def _metric(
    section_key: str,
    category: str,
    metric_key: str,
    metric_name: str,
    display_order: int,
    current_value: str,
    **extra: object,
) -> MetricRecord:
    return MetricRecord(
        section_key=section_key,
        category=category,
        metric_key=metric_key,
        metric_name=metric_name,
        display_order=display_order,
        current_value=current_value,
        **extra,  # type: ignore[arg-type]
    )


INVENTORY_METRICS: tuple[MetricRecord, ...] = (
    # executive
    _metric(
        "executive", "Core Metrics", "people_served", "Lives Impacted", 1, "4960000",
        unit="people", change_value="+43% CAGR", change_direction="up", color_theme="success",
        icon_name="Users", description="Unique individuals reached nationwide",
        data_source="National Beneficiary Database",
    ),
    _metric(
        "executive", "Core Metrics", "meals_delivered", "Meals Delivered", 2, "367490721",
        unit="meals", change_value="+40% YoY", change_direction="up", icon_name="Target",
        description="Total annual food assistance",
    ),
    _metric(
        "executive", "Core Metrics", "cost_per_meal", "Cost Per Meal", 3, "6.36",
        unit="EGP", format_type="currency", icon_name="DollarSign",
        description="Average fully loaded cost of one meal",
    ),
    _metric(
        "executive", "Core Metrics", "coverage", "Governorates Covered", 4, "27",
        unit="/27", format_type="simple", icon_name="MapPin",
        description="Governorates with active distribution",
    ),
    # financial
    _metric(
        "financial", "Revenue", "total_revenue", "Total Revenue", 1, "2199845190",
        unit="EGP", format_type="currency", color_theme="success",
    ),
    _metric(
        "financial", "Revenue", "online_individual_donations", "Online Individual Donations", 2, "749110274",
        unit="EGP", format_type="currency",
    ),
    _metric(
        "financial", "Revenue", "corporate_community_donations", "Corporate & Community Donations", 3, "329522158",
        unit="EGP", format_type="currency",
    ),
    _metric(
        "financial", "Revenue", "foundations_grants", "Foundations & Grants", 4, "293228838",
        unit="EGP", format_type="currency",
    ),
    _metric(
        "financial", "Expenses", "total_expenses", "Total Expenses", 5, "2316248118",
        unit="EGP", format_type="currency", color_theme="warning",
    ),
    _metric(
        "financial", "Financial Health", "program_ratio", "Program Ratio", 6, "83",
        unit="%", format_type="percentage", color_theme="success",
        benchmarks=("Charity Navigator target: 75%", "Sector median: 72%"),
    ),
    _metric(
        "financial", "Financial Health", "fundraising_efficiency", "Fundraising Efficiency", 7, "7.6",
        unit="%", format_type="percentage",
    ),
    _metric(
        "financial", "Financial Health", "cash_position", "Cash Position", 8, "459800000",
        unit="EGP", format_type="currency",
    ),
    # operational
    _metric(
        "operational", "Logistics", "distribution_efficiency_rate", "Distribution Efficiency Rate", 1, "94.7",
        unit="%", format_type="percentage", color_theme="success",
    ),
    _metric(
        "operational", "Cost Management", "average_cost_per_beneficiary", "Average Cost per Beneficiary", 2, "459",
        unit="EGP", format_type="currency",
    ),
    _metric(
        "operational", "Logistics", "warehouse_utilization", "Warehouse Utilization", 3, "87",
        unit="%", format_type="percentage",
    ),
    _metric(
        "operational", "Partnerships", "partner_network_reliability", "Partner Network Reliability", 4, "96",
        unit="%", format_type="percentage",
    ),
    # programs
    _metric(
        "programs", "Health Outcomes", "stunting_prevention_impact", "Stunting Prevention Impact", 1, "14% -> 2%",
        unit="reduction", format_type="text", color_theme="success",
    ),
    _metric(
        "programs", "Education", "school_feeding_coverage", "School Feeding Coverage", 2, "125000",
        unit="students",
    ),
    _metric(
        "programs", "Impact Measurements", "child_malnutrition_rate", "Child Malnutrition Rate", 3, "8.4",
        unit="%", format_type="percentage",
        recommendations=("Expand nutrition screening in Upper Egypt", "Scale fortified school meals"),
    ),
    # stakeholders
    _metric(
        "stakeholders", "Public Awareness", "overall_awareness", "Overall Awareness", 1, "84",
        unit="%", format_type="percentage",
    ),
    _metric(
        "stakeholders", "Public Awareness", "net_promoter_score", "Net Promoter Score", 2, "41",
        unit="score",
    ),
    _metric(
        "stakeholders", "Volunteer Engagement", "total_volunteers", "Total Volunteers", 3, "13000",
        unit="people",
    ),
    # scenarios
    _metric(
        "scenarios", "Economic Factors", "economic_growth_factor", "GDP Growth Rate", 1, "4.2",
        unit="%", format_type="percentage",
    ),
    _metric(
        "scenarios", "Economic Factors", "inflation_rate_factor", "Food Inflation Rate", 2, "7",
        unit="%", format_type="percentage", color_theme="warning",
    ),
    _metric(
        "scenarios", "Economic Factors", "unemployment_rate_factor", "Unemployment Rate", 3, "7.4",
        unit="pts", color_theme="warning",
    ),
    # global_signals
    _metric(
        "global_signals", "Global Indicators", "fao_food_price_index", "FAO Food Price Index", 1, "120.5",
        unit="index", color_theme="warning",
    ),
    _metric(
        "global_signals", "Global Indicators", "usd_egp_exchange_rate", "USD/EGP Exchange Rate", 2, "30.85",
        unit="EGP per USD", color_theme="danger",
    ),
    _metric(
        "global_signals", "Global Indicators", "cost_of_healthy_diet", "Cost of Healthy Diet", 3, "3.85",
        unit="int-$/day", color_theme="warning",
    ),
    _metric(
        "global_signals", "Global Indicators", "food_insecurity_fies", "Food Insecurity (FIES)", 4, "28.5",
        unit="%", format_type="percentage", color_theme="danger",
    ),
    _metric(
        "global_signals", "Egypt Indicators", "egypt_cpi_yoy", "Egypt CPI YoY", 5, "25.8",
        unit="%", format_type="percentage", color_theme="danger",
    ),
    _metric(
        "global_signals", "Egypt Indicators", "cbe_food_inflation", "CBE Food Inflation", 6, "32.1",
        unit="%", format_type="percentage", color_theme="danger",
    ),
    _metric(
        "global_signals", "Egypt Indicators", "rain_et0_anomaly", "Rain - ET0 Anomaly", 7, "2.3",
        unit="mm/day", color_theme="warning",
    ),
    _metric(
        "global_signals", "Egypt Indicators", "refugees_in_egypt", "Refugees in Egypt", 8, "280000",
        unit="people", color_theme="warning",
    ),
)
