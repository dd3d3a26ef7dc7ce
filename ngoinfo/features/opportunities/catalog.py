"""
Funding opportunity catalog.

Served locally while the ReqAgent API is mocked (USE_MSW) and as the
browse list.
"""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from ngoinfo.models.opportunity import Opportunity

DEADLINE_WINDOWS = {"next_30": 30, "next_60": 60, "next_90": 90}

OPPORTUNITIES: List[Opportunity] = [
    Opportunity(
        id="opp-001",
        title="Community Health Initiative Grant",
        donor="Gates Foundation",
        country="Kenya",
        region="East Africa",
        deadline="2025-12-15T23:59:59Z",
        amount_min=50000,
        amount_max=150000,
        sectors=["Health", "Community Development"],
        summary="Supporting community-led health programs focusing on maternal and child health in rural areas.",
        eligibility="NGOs registered in East Africa with at least 2 years of health program experience.",
        budget_notes="Grants range from $50K to $150K. Up to 15% overhead allowed.",
        official_url="https://gatesfoundation.org/grants/health-initiative",
        created_at="2025-09-01T10:00:00Z",
    ),
    Opportunity(
        id="opp-002",
        title="Climate Adaptation for Smallholder Farmers",
        donor="Green Climate Fund",
        country="Multi-country",
        region="Sub-Saharan Africa",
        deadline="2025-11-30T23:59:59Z",
        amount_min=100000,
        amount_max=500000,
        sectors=["Environment", "Agriculture", "Climate Change"],
        summary="Large-scale climate adaptation projects helping smallholder farmers build resilience.",
        eligibility="NGOs with proven track record in climate adaptation and agriculture programs.",
        budget_notes="Grants from $100K to $500K for 2-3 year projects.",
        official_url="https://greenclimate.fund/opportunities",
        created_at="2025-08-15T14:30:00Z",
    ),
    Opportunity(
        id="opp-003",
        title="Girls Education Accelerator",
        donor="Malala Fund",
        country="Nigeria",
        region="West Africa",
        deadline="2025-10-31T23:59:59Z",
        amount_min=25000,
        amount_max=75000,
        sectors=["Education", "Gender Equality"],
        summary="Empowering girls through secondary education in underserved communities.",
        eligibility="Local NGOs focused on girls education with community partnerships.",
        budget_notes="Grants $25K-$75K for 12-18 month programs. No overhead restrictions.",
        official_url="https://malala.org/grants",
        created_at="2025-09-10T09:00:00Z",
    ),
    Opportunity(
        id="opp-004",
        title="Water & Sanitation Infrastructure",
        donor="World Bank",
        country="Tanzania",
        region="East Africa",
        deadline="2026-01-31T23:59:59Z",
        amount_min=200000,
        amount_max=1000000,
        sectors=["Water", "Infrastructure", "Public Health"],
        summary="Large-scale WASH infrastructure projects in rural and peri-urban areas.",
        eligibility="Established NGOs with engineering capacity and government partnerships.",
        budget_notes="Major grants $200K-$1M. Requires 10% local co-financing.",
        official_url="https://worldbank.org/water-grants",
        created_at="2025-08-01T08:00:00Z",
    ),
    Opportunity(
        id="opp-005",
        title="Youth Employment & Skills Training",
        donor="Mastercard Foundation",
        country="Uganda",
        region="East Africa",
        deadline="2025-11-15T23:59:59Z",
        amount_min=75000,
        amount_max=200000,
        sectors=["Education", "Economic Development", "Youth"],
        summary="Vocational training and job placement programs for unemployed youth aged 18-35.",
        eligibility="NGOs with established training facilities and employer networks.",
        budget_notes="Grants $75K-$200K for 18-24 month programs.",
        official_url="https://mastercardfdn.org/youth-employment",
        created_at="2025-09-05T11:00:00Z",
    ),
    Opportunity(
        id="opp-006",
        title="Refugee Integration Program",
        donor="UNHCR",
        country="Multi-country",
        region="Global",
        deadline="2025-12-31T23:59:59Z",
        amount_min=50000,
        amount_max=300000,
        sectors=["Humanitarian", "Migration", "Social Services"],
        summary="Supporting refugee integration through education, housing, and livelihood programs.",
        eligibility="NGOs working in refugee-hosting communities with proven integration models.",
        budget_notes="Flexible funding $50K-$300K based on program scope.",
        official_url="https://unhcr.org/integration-grants",
        created_at="2025-08-20T13:00:00Z",
    ),
]


def get_opportunity_by_id(opportunity_id: str) -> Optional[Opportunity]:
    for opp in OPPORTUNITIES:
        if opp.id == opportunity_id:
            return opp
    return None


def list_regions() -> List[str]:
    return sorted({opp.region for opp in OPPORTUNITIES})


def list_sectors() -> List[str]:
    return sorted({sector for opp in OPPORTUNITIES for sector in opp.sectors})


def filter_opportunities(
    region: Optional[str] = None,
    sector: Optional[str] = None,
    search: Optional[str] = None,
    deadline: Optional[str] = None,
    now: Optional[datetime] = None,
) -> List[Opportunity]:
    """Filter the catalog. "all" (or empty) disables a region/sector filter.

    deadline is one of next_30/next_60/next_90 and keeps opportunities due
    on or before now + N days. Past deadlines are not excluded.
    """
    filtered = list(OPPORTUNITIES)

    if region and region != "all":
        filtered = [opp for opp in filtered if opp.region == region]

    if sector and sector != "all":
        filtered = [opp for opp in filtered if sector in opp.sectors]

    if search:
        query = search.lower()
        filtered = [
            opp for opp in filtered
            if query in opp.title.lower()
            or query in opp.donor.lower()
            or any(query in s.lower() for s in opp.sectors)
        ]

    if deadline:
        days = DEADLINE_WINDOWS.get(deadline, 90)
        current = now or datetime.now(timezone.utc)
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        cutoff = current + timedelta(days=days)
        filtered = [opp for opp in filtered if opp.deadline <= cutoff]

    return filtered
