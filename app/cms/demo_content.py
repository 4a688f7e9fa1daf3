"""
Demo catalogue shared by scripts/seed_content.py and the development mock API.
"""

CATEGORIES = [
    {"name": "Unit economics", "slug": "unit-economics", "description": "Articles about unit economics"},
    {"name": "Marketplaces", "slug": "marketplaces", "description": "Selling on marketplaces"},
    {"name": "Analytics", "slug": "analytics", "description": "Business process analytics"},
]

TAGS = [
    {"name": "OZON", "slug": "ozon"},
    {"name": "Wildberries", "slug": "wildberries"},
    {"name": "KPI", "slug": "kpi"},
    {"name": "Audit", "slug": "audit"},
    {"name": "Automation", "slug": "automation"},
]

PAGES = [
    {
        "title": "Home",
        "slug": "home",
        "template": "landing",
        "content": {
            "sections": [
                {"id": "section-hero", "type": "hero", "content": {"title": "Turning data into profit"}},
                {"id": "section-expertise", "type": "expertise", "content": {"title": "Expertise"}},
                {"id": "section-services", "type": "services", "content": {"title": "Services"}},
            ],
            "metadata": {"seo": {"title": "", "description": ""}},
        },
        "meta_title": "Home - Unit economics consulting",
        "meta_description": "Unit economics expertise, marketplace audits and business process optimization",
        "is_published": True,
    },
    {
        "title": "Services",
        "slug": "services",
        "template": "service",
        "content": {
            "sections": [
                {"id": "section-header", "type": "header", "content": {"title": "Services"}},
                {
                    "id": "section-services-list",
                    "type": "services-list",
                    "content": {
                        "services": [
                            {"title": "Unit economics audit", "slug": "unit-economics"},
                            {"title": "OZON audit", "slug": "ozon-audit"},
                            {"title": "Business process optimization", "slug": "business-optimization"},
                        ]
                    },
                },
            ],
            "metadata": {"seo": {"title": "", "description": ""}},
        },
        "meta_title": "Services - Unit economics consulting",
        "meta_description": "Audits and optimization for marketplace sellers",
        "is_published": True,
    },
]

POSTS = [
    {
        "title": "How to improve marketplace unit economics by 30%",
        "slug": "improve-unit-economics-marketplace",
        "excerpt": "Practical steps to raise the profitability of a marketplace business",
        "content": (
            "# How to improve marketplace unit economics by 30%\n\n"
            "This article walks through proven ways to improve your unit economics..."
        ),
        "category": "unit-economics",
        "tags": ["kpi", "automation"],
        "reading_time": 5,
        "is_published": True,
    },
    {
        "title": "Key metrics for monitoring performance on OZON",
        "slug": "key-metrics-ozon-monitoring",
        "excerpt": "The indicators to track for a successful OZON storefront",
        "content": (
            "# Key metrics for monitoring performance on OZON\n\n"
            "To run a healthy OZON store you need to watch these metrics regularly..."
        ),
        "category": "marketplaces",
        "tags": ["ozon", "audit"],
        "reading_time": 7,
        "is_published": True,
    },
    {
        "title": "Wildberries fulfillment costs explained",
        "slug": "wildberries-fulfillment-costs",
        "excerpt": "Where the logistics money goes and what can be cut",
        "content": "# Wildberries fulfillment costs explained\n\nDraft.",
        "category": "marketplaces",
        "tags": ["wildberries"],
        "reading_time": 4,
        "is_published": False,
    },
]
