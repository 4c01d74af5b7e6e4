# Overview: All permission definitions organized by category.
# Each permission is defined as: (name, description, category, kind)

from .categories import PermissionCategory, PermissionKind


# Names referenced directly by the authorization resolver
VIEW_RESTAURANTS = "restaurantes.ver"
VIEW_CATEGORIES = "categorias.ver"
MENU_PREFIX = "menu."


def _crud(resource, label, category, kind=PermissionKind.RESTAURANTE):
    return [
        (f"{resource}.ver", f"View {label}", category, kind),
        (f"{resource}.crear", f"Create {label}", category, kind),
        (f"{resource}.editar", f"Edit {label}", category, kind),
        (f"{resource}.eliminar", f"Delete {label}", category, kind),
    ]


# -- CASH REGISTER --

CAJA_PERMISSIONS = [
    ("caja.ver", "View cash sessions and daily summaries", PermissionCategory.CAJA, PermissionKind.RESTAURANTE),
    ("caja.abrir", "Open a cash session", PermissionCategory.CAJA, PermissionKind.RESTAURANTE),
    ("caja.cerrar", "Close a cash session and reconcile", PermissionCategory.CAJA, PermissionKind.RESTAURANTE),
    ("caja.registrar_ingresos", "Record extra income/expense on an open session", PermissionCategory.CAJA, PermissionKind.RESTAURANTE),
]


# -- ROLES --

ROLES_PERMISSIONS = _crud("roles", "custom roles", PermissionCategory.ROLES, PermissionKind.SISTEMA)


# -- RESTAURANTS & CATALOGS --

RESTAURANTES_PERMISSIONS = _crud("restaurantes", "restaurants", PermissionCategory.RESTAURANTES, PermissionKind.SISTEMA)
CATEGORIAS_PERMISSIONS = _crud("categorias", "menu categories", PermissionCategory.CATEGORIAS)
MENU_PERMISSIONS = _crud("menu", "menu items", PermissionCategory.MENU)
INVENTARIO_PERMISSIONS = _crud("inventario", "inventory", PermissionCategory.INVENTARIO)


# -- OPERATIONS --

PEDIDOS_PERMISSIONS = _crud("pedidos", "orders", PermissionCategory.PEDIDOS) + [
    ("pedidos.cambiar_estado", "Change order status", PermissionCategory.PEDIDOS, PermissionKind.RESTAURANTE),
]
GASTOS_PERMISSIONS = _crud("gastos", "expenses", PermissionCategory.GASTOS)
CLIENTES_PERMISSIONS = _crud("clientes", "customers", PermissionCategory.CLIENTES)


# -- USERS & NOTIFICATIONS --

USUARIOS_PERMISSIONS = _crud("usuarios", "users", PermissionCategory.USUARIOS, PermissionKind.SISTEMA)
NOTIFICACIONES_PERMISSIONS = [
    ("notificaciones.ver", "View notifications", PermissionCategory.NOTIFICACIONES, PermissionKind.RESTAURANTE),
    ("notificaciones.crear", "Send notifications", PermissionCategory.NOTIFICACIONES, PermissionKind.RESTAURANTE),
]


# -- GLOBAL --

SISTEMA_PERMISSIONS = [
    ("*", "All permissions", PermissionCategory.SISTEMA, PermissionKind.SISTEMA),
]


PERMISSION_DEFINITIONS = (
    CAJA_PERMISSIONS
    + ROLES_PERMISSIONS
    + RESTAURANTES_PERMISSIONS
    + CATEGORIAS_PERMISSIONS
    + MENU_PERMISSIONS
    + INVENTARIO_PERMISSIONS
    + PEDIDOS_PERMISSIONS
    + GASTOS_PERMISSIONS
    + CLIENTES_PERMISSIONS
    + USUARIOS_PERMISSIONS
    + NOTIFICACIONES_PERMISSIONS
    + SISTEMA_PERMISSIONS
)
