"""
publishing/ — Todo lo relacionado con publicar una contribución.

Módulos:
- paths.py         → Nombres de directorio y branch (funciones puras)
- hosting.py       → Interfaz con el servicio remoto + value objects y errores
- github_client.py → Implementación sobre la API REST de GitHub
- contribution.py  → ContributionPublisher: el flujo completo
"""
