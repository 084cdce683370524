# Overview: Module definitions and the fixed action list.

from .categories import Action, Module, ModuleCategory


# Format: (code, name, description, category)
MODULE_DEFINITIONS = [
    (Module.DASHBOARD, "Dashboard", "Overview of the business day", ModuleCategory.OPERATIONAL),
    (Module.CASH_MANAGEMENT, "Cash Management", "Cash sessions, payments and drawer closing", ModuleCategory.FINANCIAL),
    (Module.EMPLOYEE_ADMINISTRATION, "Employee Administration", "Staff records, credentials and permissions", ModuleCategory.ADMINISTRATIVE),
    (Module.REPORTING, "Reporting", "Sales, performance and shift reports", ModuleCategory.REPORTING),
    (Module.SETTINGS, "Settings", "Business and system configuration", ModuleCategory.ADMINISTRATIVE),
    (Module.BAR_SERVICE, "Bar Service", "Tabs, orders and table service", ModuleCategory.OPERATIONAL),
    (Module.KITCHEN_MONITOR, "Kitchen Monitor", "Kitchen order queue and preparation", ModuleCategory.OPERATIONAL),
    (Module.CUSTOMER_RECORDS, "Customer Records", "Customer registry and history", ModuleCategory.OPERATIONAL),
    (Module.BAR_MONITOR, "Bar Monitor", "Drink order queue and preparation", ModuleCategory.OPERATIONAL),
]

MODULES = tuple(definition[0] for definition in MODULE_DEFINITIONS)

ACTIONS = (
    Action.VIEW,
    Action.CREATE,
    Action.EDIT,
    Action.DELETE,
    Action.ADMINISTER,
)
