CONFIG = {
    "module_slug": "admin",
    "auth_guard": "staff",
    "functional_name": "Administration",
    "description": "Explore the system administration options and review key statistics.",
    "base_permission": "access-admin",
    "order": 0,
    # Main navigation entry
    "nav_item": {
        "show_in_nav": True,
        "route_name": "internal.admin.panel",
        "icon": "ShieldCheck",
    },
    # Reusable navigation blocks
    "nav_components": {
        "links": {
            "panel": {
                "title": "Administration",
                "route_name_suffix": "panel",
                "icon": "LayoutDashboard",
                "permission": "access-admin",
            },
            "users_list": {
                "title": "User list",
                "route_name_suffix": "users.index",
                "icon": "ScrollText",
                "permission": "access-admin",
            },
            "users_create": {
                "title": "Create user",
                "route_name_suffix": "users.create",
                "icon": "UserPlus",
                "permission": "access-admin",
            },
            "back_to_panel": {
                "title": "Back to panel",
                "route_name_suffix": "panel",
                "icon": "ArrowLeft",
                "permission": "access-admin",
            },
            "back_to_list": {
                "title": "Back to list",
                "route_name_suffix": "users.index",
                "icon": "ArrowLeft",
                "permission": "access-admin",
            },
        },
        "groups": {
            "admin_panel_nav": [
                "$ref:nav_components.links.users_list",
            ],
            "user_management": [
                "$ref:links.panel",
                "$ref:links.users_list",
                "$ref:links.users_create",
            ],
            "back_navigation": [
                "$ref:links.back_to_panel",
                "$ref:links.back_to_list",
            ],
        },
    },
    # Contextual navigation per route suffix
    "contextual_nav": {
        "default": ["$ref:groups.user_management"],
        "users.index": [
            "$ref:nav_components.links.back_to_panel",
            "$ref:nav_components.links.users_create",
        ],
        "users.create": ["$ref:nav_components.groups.back_navigation"],
        "users.edit": [
            "$ref:nav_components.links.back_to_panel",
            "$ref:nav_components.links.back_to_list",
        ],
    },
    "panel_items": [
        {
            "name": "User list",
            "description": "Add, edit or delete staff accounts.",
            "route_name_suffix": "users.index",
            "icon": "Users",
            "permission": "access-admin",
        },
    ],
    "breadcrumb_components": {
        "admin_root": {
            "title": "Administration",
            "route_name_suffix": "panel",
        },
        "users_list": {
            "title": "User list",
            "route_name_suffix": "users.index",
        },
        "users_create": {
            "title": "Create user",
            "route_name_suffix": "users.create",
        },
        "users_edit": {
            "title": "Edit user",
            "route_name_suffix": "users.edit",
            "dynamic_title_prop": "user.name",
        },
    },
    "breadcrumbs": {
        "default": [
            "$ref:breadcrumb_components.admin_root",
        ],
        "users.index": [
            "$ref:breadcrumb_components.admin_root",
            "$ref:breadcrumb_components.users_list",
        ],
        "users.create": [
            "$ref:breadcrumb_components.admin_root",
            "$ref:breadcrumb_components.users_list",
            "$ref:breadcrumb_components.users_create",
        ],
        "users.edit": [
            "$ref:breadcrumb_components.admin_root",
            "$ref:breadcrumb_components.users_list",
            "$ref:breadcrumb_components.users_edit",
        ],
    },
}
