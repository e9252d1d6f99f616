"""
utils/utbms.py — UTBMS (Uniform Task-Based Management System) litigation codes.

Catalogue of the activity codes used on time entries and invoices, their
grouping into categories, and the activity templates seeded for a new firm.
"""

from decimal import Decimal

UTBMS_CODES = {
    # L100: Case assessment, development and administration
    "L110": {"name": "Legal Research",
             "description": "Research case law, statutes, regulations, and secondary sources"},
    "L120": {"name": "Document Preparation/Review",
             "description": "Draft, review, and revise legal documents including pleadings, contracts, and correspondence"},
    "L130": {"name": "Factual Investigation",
             "description": "Investigate facts, interview witnesses, review documents"},
    "L140": {"name": "Analysis/Strategy",
             "description": "Analyze legal issues, develop case strategy, evaluate options"},

    # L200: Discovery
    "L210": {"name": "Discovery - Document Review",
             "description": "Review and analyze documents produced in discovery"},
    "L220": {"name": "Discovery - Depositions",
             "description": "Prepare for, attend, and summarize depositions"},
    "L230": {"name": "Discovery - Interrogatories",
             "description": "Draft and respond to interrogatories"},
    "L240": {"name": "Discovery - Other",
             "description": "Other discovery activities including RFPs, RFAs"},

    # L300: Court proceedings
    "L310": {"name": "Court Appearances",
             "description": "Attend hearings, trials, and other court proceedings"},
    "L320": {"name": "Trial Preparation",
             "description": "Prepare for trial including witness prep, exhibit preparation"},
    "L330": {"name": "Motions",
             "description": "Prepare, file, and argue motions"},

    # L400: Negotiation and ADR
    "L410": {"name": "Negotiations",
             "description": "Negotiate settlements, contracts, and agreements"},
    "L420": {"name": "Mediation/Arbitration",
             "description": "Participate in mediation, arbitration, or other ADR"},

    # L500: Client relations
    "L510": {"name": "Client Communication",
             "description": "Telephone calls, emails, meetings with client"},
    "L520": {"name": "Client Counseling",
             "description": "Provide legal advice and counseling to client"},

    # L600: Administrative
    "L610": {"name": "Administrative",
             "description": "File management, billing, calendar management"},
    "L620": {"name": "Travel",
             "description": "Travel time related to case"},

    # Hawaii
    "HI_L621": {"name": "Inter-Island Travel",
                "description": "Travel between Hawaiian islands for case-related matters"},
}

UTBMS_CATEGORIES = {
    "research":       ["L110", "L130", "L140"],
    "documents":      ["L120"],
    "discovery":      ["L210", "L220", "L230", "L240"],
    "court":          ["L310", "L320", "L330"],
    "negotiation":    ["L410", "L420"],
    "client":         ["L510", "L520"],
    "administrative": ["L610", "L620", "HI_L621"],
}

TIME_ROUNDING = {
    "SIX_MINUTE": 6,        # 0.1 hour
    "FIFTEEN_MINUTE": 15,
    "THIRTY_MINUTE": 30,
}


def _template(name, activity_type, code, description, minutes, rate):
    return {
        "name": name,
        "activity_type": activity_type,
        "utbms_code": code,
        "description": description,
        "default_duration": minutes,
        "default_rate": Decimal(rate),
        "is_billable": True,
        "is_shared": True,
    }


DEFAULT_ACTIVITY_TEMPLATES = [
    _template("Client Phone Call", "client_call", "L510",
              "Telephone conference with client regarding {{case_matter}}", 15, "300.00"),
    _template("Legal Research", "legal_research", "L110",
              "Research {{legal_issue}}", 60, "300.00"),
    _template("Document Drafting", "document_drafting", "L120",
              "Draft {{document_type}}", 120, "300.00"),
    _template("Court Appearance", "court_appearance", "L310",
              "Appear in {{court_name}} for {{matter}}", 180, "400.00"),
    _template("Document Review", "document_review", "L120",
              "Review {{document_type}}", 30, "300.00"),
    _template("Client Meeting", "client_meeting", "L510",
              "In-person meeting with client regarding {{case_matter}}", 60, "350.00"),
    _template("Deposition", "deposition", "L220",
              "Deposition of {{witness_name}}", 240, "400.00"),
    _template("Settlement Negotiation", "negotiation", "L410",
              "Negotiate settlement terms with opposing counsel", 90, "350.00"),
    _template("Inter-Island Travel", "travel", "HI_L621",
              "Travel from {{departure_island}} to {{arrival_island}} for {{purpose}}", 180, "250.00"),
    _template("Email Correspondence", "correspondence", "L510",
              "Email correspondence with {{recipient}} regarding {{subject}}", 6, "300.00"),
]


def is_valid_code(code: str | None) -> bool:
    return code in UTBMS_CODES


def category_for(code: str) -> str | None:
    for category, codes in UTBMS_CATEGORIES.items():
        if code in codes:
            return category
    return None


def catalogue() -> list[dict]:
    """Codes as a flat list for the API, in catalogue order."""
    return [
        {"code": code, "category": category_for(code), **info}
        for code, info in UTBMS_CODES.items()
    ]
