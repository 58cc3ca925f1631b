CONFIG = {
    "module_slug": "module02",
    "functional_name": "Generic module 2",
    "description": "Generic module for demonstration purposes.",
    "inertia_view_directory": "module02",
    "base_permission": "access-module-02",
    "order": 20,
    "nav_item": {
        "show_in_nav": True,
        "route_name": "internal.module02.index",
        "icon": "FilePlus2",
    },
    "nav_components": {
        "links": {
            "panel": {
                "title": "Control panel",
                "route_name_suffix": "index",
                "icon": "LayoutDashboard",
                "permission": "access-module-02",
            },
            "back_to_panel": {
                "title": "Back to panel",
                "route_name_suffix": "index",
                "icon": "SquareChevronLeft",
                "permission": "access-module-02",
            },
        },
    },
    "contextual_nav": {
        "default": ["$ref:links.panel"],
    },
    "panel_items": [
        {
            "name": "Sample item 1",
            "description": "Sample item 1 for the project demonstration.",
            "route_name_suffix": "index",
            "icon": "FilePlus2",
            "permission": "access-module-02",
        },
    ],
    "breadcrumbs": {
        "default": [
            {"title": "Generic module 2", "route_name_suffix": "index"},
        ],
    },
}
