"""
app/core/errors.py
Errores de dominio del juego de predicciones.

Cada error lleva su código HTTP; main.py los convierte en respuestas JSON
con un único exception handler.
"""


class PitwallError(Exception):
    """Error base de la aplicación"""
    status_code: int = 500

    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        if status_code:
            self.status_code = status_code
        super().__init__(self.message)


class ValidationError(PitwallError):
    """
    Configuración o datos mal formados.

    Ejemplos:
    - Tabla de puntos vacía
    - Carrera de otra temporada distinta a la de la sala
    - Posiciones repetidas en una predicción
    """
    status_code = 400

    def __init__(self, message: str = "Datos no válidos"):
        super().__init__(message, self.status_code)


class AuthorizationError(PitwallError):
    """Un usuario intenta una acción reservada al anfitrión (o no es participante)"""
    status_code = 403

    def __init__(self, message: str = "No tienes permisos para esta acción"):
        super().__init__(message, self.status_code)


class NotFoundError(PitwallError):
    status_code = 404

    def __init__(self, message: str = "Recurso no encontrado"):
        super().__init__(message, self.status_code)


class LockedError(PitwallError):
    """
    Predicción enviada después del cierre.
    Es un error que el usuario entiende y puede resolver (no hay nada que reintentar).
    """
    status_code = 409

    def __init__(self, message: str = "Las predicciones están cerradas"):
        super().__init__(message, self.status_code)


class ExternalFetchError(PitwallError):
    """El proveedor de datos de F1 no responde, limita peticiones o cambia el formato"""
    status_code = 502

    def __init__(self, message: str = "Error obteniendo datos del proveedor externo"):
        super().__init__(message, self.status_code)
