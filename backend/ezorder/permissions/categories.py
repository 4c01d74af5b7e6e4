# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    CAJA = "caja"
    ROLES = "roles"
    RESTAURANTES = "restaurantes"
    CATEGORIAS = "categorias"
    MENU = "menu"
    INVENTARIO = "inventario"
    PEDIDOS = "pedidos"
    GASTOS = "gastos"
    CLIENTES = "clientes"
    USUARIOS = "usuarios"
    NOTIFICACIONES = "notificaciones"
    SISTEMA = "sistema"


class PermissionKind:
    """System-wide permissions versus permissions exercised inside one restaurant."""
    SISTEMA = "sistema"
    RESTAURANTE = "restaurante"
