CONFIG = {
    "module_slug": "module01",
    "functional_name": "Generic module 1",
    "description": "Generic module for demonstration purposes.",
    "inertia_view_directory": "module01",
    "base_permission": "access-module-01",
    "order": 10,
    "nav_item": {
        "show_in_nav": True,
        "route_name": "internal.module01.index",
        "icon": "ClipboardList",
    },
    "contextual_nav": {
        "default": [
            {
                "title": "Sample panel",
                "route_name_suffix": "index",
                "icon": "LayoutDashboard",
                "permission": "access-module-01",
            },
        ],
    },
    "panel_items": [
        {
            "name": "Sample item 1",
            "description": "Sample item 1 for the project demonstration.",
            "route_name_suffix": "index",
            "icon": "FilePlus2",
            "permission": "access-module-01",
        },
    ],
    "breadcrumbs": {
        "default": [
            {"title": "Generic module 1", "route_name_suffix": "index"},
        ],
    },
}
