"""
utils/policy.py — Declarative staff authorisation.

Two tables drive every decision:

  ROLE_CAPABILITIES      role     → set of capabilities it holds
  ENDPOINT_CAPABILITIES  endpoint → capability it requires

Endpoints not listed require only the base "staff" capability. The guard
in utils/auth.py looks the current endpoint up once per request; views
themselves never check roles.
"""

from models import UserRole

STAFF = "staff"
USERS_READ = "users:read"
USERS_MANAGE = "users:manage"
BILLING_CONFIGURE = "billing:configure"
BILLING_INVOICE = "billing:invoice"
PORTAL_INVITE = "portal:invite"

ALL_CAPABILITIES = frozenset({
    STAFF, USERS_READ, USERS_MANAGE, BILLING_CONFIGURE, BILLING_INVOICE, PORTAL_INVITE,
})

ROLE_CAPABILITIES = {
    UserRole.admin:     ALL_CAPABILITIES,
    UserRole.attorney:  ALL_CAPABILITIES - {USERS_MANAGE},
    UserRole.paralegal: frozenset({STAFF, BILLING_INVOICE}),
    UserRole.secretary: frozenset({STAFF}),
}

ENDPOINT_CAPABILITIES = {
    # User management
    "users.list_users":           USERS_READ,
    "users.get_user":             USERS_READ,
    "users.create_user":          USERS_MANAGE,
    "users.update_user":          USERS_MANAGE,
    "users.delete_user":          USERS_MANAGE,

    # Invoicing
    "invoices.create_invoice":    BILLING_INVOICE,
    "invoices.update_invoice":    BILLING_INVOICE,
    "invoices.delete_invoice":    BILLING_INVOICE,
    "invoices.generate_invoice":  BILLING_INVOICE,
    "invoices.send_invoice":      BILLING_INVOICE,

    # Billing configuration
    "billing_config.create_rate_table":        BILLING_CONFIGURE,
    "billing_config.update_rate_table":        BILLING_CONFIGURE,
    "billing_config.delete_rate_table":        BILLING_CONFIGURE,
    "billing_config.create_activity_template": BILLING_CONFIGURE,
    "billing_config.update_activity_template": BILLING_CONFIGURE,
    "billing_config.delete_activity_template": BILLING_CONFIGURE,

    # Client portal administration
    "portal_admin.create_invitation":  PORTAL_INVITE,
    "portal_admin.list_portal_users":  PORTAL_INVITE,
    "portal_admin.delete_portal_user": PORTAL_INVITE,
}


def required_capability(endpoint: str | None) -> str:
    return ENDPOINT_CAPABILITIES.get(endpoint or "", STAFF)


def capabilities_for(role) -> frozenset:
    if isinstance(role, str):
        try:
            role = UserRole(role)
        except ValueError:
            return frozenset()
    return ROLE_CAPABILITIES.get(role, frozenset())


def is_allowed(role, endpoint: str | None) -> bool:
    return required_capability(endpoint) in capabilities_for(role)
