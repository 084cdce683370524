# Overview: Module, action and module-category constants for the permission matrix.


class Module:
    """Functional areas subject to access control (closed set)."""
    DASHBOARD = "dashboard"
    CASH_MANAGEMENT = "cash_management"
    EMPLOYEE_ADMINISTRATION = "employee_administration"
    REPORTING = "reporting"
    SETTINGS = "settings"
    BAR_SERVICE = "bar_service"
    KITCHEN_MONITOR = "kitchen_monitor"
    CUSTOMER_RECORDS = "customer_records"
    BAR_MONITOR = "bar_monitor"


class Action:
    """Per-module actions, ordered by increasing privilege."""
    VIEW = "view"
    CREATE = "create"
    EDIT = "edit"
    DELETE = "delete"
    ADMINISTER = "administer"


class ModuleCategory:
    """Module categories for grouping in the UI."""
    OPERATIONAL = "OPERATIONAL"
    ADMINISTRATIVE = "ADMINISTRATIVE"
    FINANCIAL = "FINANCIAL"
    REPORTING = "REPORTING"
