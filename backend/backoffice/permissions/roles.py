# Overview: Role templates, hierarchy and the job-title keyword table.

"""
Role templates.

Each role maps to a partial matrix: module -> granted actions. Modules not
listed are denied. Higher actions usually imply lower ones in these
templates, but every cell is an independent boolean.
"""

from .categories import Action, Module


class RoleName:
    ADMINISTRATOR = "administrator"
    MANAGER = "manager"
    BARTENDER = "bartender"
    FRONT_OF_HOUSE_CASHIER = "front_of_house_cashier"
    CASHIER = "cashier"
    SERVER = "server"
    COOK = "cook"
    STAFF = "staff"


TOP_PRIVILEGE_ROLE = RoleName.ADMINISTRATOR
LOWEST_PRIVILEGE_ROLE = RoleName.STAFF


NO_ACCESS = frozenset()
READ_ONLY = frozenset({Action.VIEW})
READ_WRITE = frozenset({Action.VIEW, Action.CREATE, Action.EDIT})
OPERATIONAL = frozenset({Action.VIEW, Action.CREATE, Action.EDIT, Action.DELETE})
FULL = frozenset({Action.VIEW, Action.CREATE, Action.EDIT, Action.DELETE, Action.ADMINISTER})


ROLE_DEFINITIONS = {
    RoleName.ADMINISTRATOR: {
        "display_name": "Administrator",
        "description": "Owner-level access to every module",
        "hierarchy": 6,
        "permissions": {
            Module.DASHBOARD: FULL,
            Module.CASH_MANAGEMENT: FULL,
            Module.EMPLOYEE_ADMINISTRATION: FULL,
            Module.REPORTING: FULL,
            Module.SETTINGS: FULL,
            Module.BAR_SERVICE: FULL,
            Module.KITCHEN_MONITOR: FULL,
            Module.CUSTOMER_RECORDS: FULL,
            Module.BAR_MONITOR: FULL,
        },
    },
    RoleName.MANAGER: {
        "display_name": "Manager",
        "description": "Runs the floor, the team and the cash",
        "hierarchy": 5,
        "permissions": {
            Module.DASHBOARD: FULL,
            Module.CASH_MANAGEMENT: FULL,
            Module.EMPLOYEE_ADMINISTRATION: FULL,
            Module.REPORTING: FULL,
            Module.SETTINGS: FULL,
            Module.BAR_SERVICE: FULL,
            Module.KITCHEN_MONITOR: FULL,
            Module.CUSTOMER_RECORDS: FULL,
            Module.BAR_MONITOR: FULL,
        },
    },
    RoleName.BARTENDER: {
        "display_name": "Bartender",
        "description": "Prepares drinks and works the bar",
        "hierarchy": 3,
        "permissions": {
            Module.DASHBOARD: READ_ONLY,
            Module.BAR_MONITOR: OPERATIONAL,
            Module.BAR_SERVICE: READ_WRITE,
        },
    },
    RoleName.FRONT_OF_HOUSE_CASHIER: {
        "display_name": "Front-of-House Cashier",
        "description": "Greets customers, opens tabs and takes payments",
        "hierarchy": 3,
        "permissions": {
            Module.DASHBOARD: READ_ONLY,
            Module.CASH_MANAGEMENT: OPERATIONAL,
            Module.BAR_SERVICE: READ_WRITE,
            Module.CUSTOMER_RECORDS: READ_WRITE,
        },
    },
    RoleName.CASHIER: {
        "display_name": "Cashier",
        "description": "Operates the cash register",
        "hierarchy": 2,
        "permissions": {
            Module.DASHBOARD: READ_ONLY,
            Module.CASH_MANAGEMENT: OPERATIONAL,
            Module.CUSTOMER_RECORDS: READ_WRITE,
            Module.BAR_SERVICE: READ_ONLY,
        },
    },
    RoleName.SERVER: {
        "display_name": "Server",
        "description": "Serves tables and takes orders",
        "hierarchy": 2,
        "permissions": {
            Module.BAR_SERVICE: READ_WRITE,
        },
    },
    RoleName.COOK: {
        "display_name": "Cook",
        "description": "Prepares dishes from the kitchen queue",
        "hierarchy": 2,
        "permissions": {
            Module.DASHBOARD: READ_ONLY,
            Module.KITCHEN_MONITOR: OPERATIONAL,
        },
    },
    RoleName.STAFF: {
        "display_name": "Staff",
        "description": "Baseline access for any team member",
        "hierarchy": 1,
        "permissions": {
            Module.DASHBOARD: READ_ONLY,
        },
    },
}

DEFAULT_ROLE_PERMISSIONS = {
    role: definition["permissions"] for role, definition in ROLE_DEFINITIONS.items()
}

ROLE_HIERARCHY = {
    role: definition["hierarchy"] for role, definition in ROLE_DEFINITIONS.items()
}


# Ordered: first entry with a matching keyword wins.
# Keywords are compared against lowercased, accent-stripped text.
# No keyword ever yields the administrator role.
ROLE_KEYWORDS = [
    (("gerente", "manager"), RoleName.MANAGER),
    (("atendente", "front of house", "front-of-house"), RoleName.FRONT_OF_HOUSE_CASHIER),
    (("caixa", "cashier"), RoleName.CASHIER),
    (("garcom", "waiter", "waitress", "server"), RoleName.SERVER),
    (("cozinheiro", "cozinha", "cook", "chef"), RoleName.COOK),
    (("barman", "bartender"), RoleName.BARTENDER),
]
