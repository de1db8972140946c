"""
Reflux - Клиент задач генерации изображений

Управляет жизненным циклом асинхронных задач генерации в удалённом сервисе
предсказаний: создание, пакетный polling, встраивание результатов и
метаданные размещения на холсте.

Основные компоненты:
- prediction_client: HTTP-клиент endpoint'а предсказаний
- output_registry: Реестр отслеживаемых задач
- session_state: Состояние сессии, сохраняемое между запусками
- prediction_manager: Менеджер жизненного цикла
- poller: Периодический polling
"""

try:
    from _metadata import __version__, __product__, __description__
except ImportError:
    # Fallback на случай, если _metadata.py недоступен
    __version__ = "0.1"
    __product__ = "Reflux"
    __description__ = "Клиент жизненного цикла задач генерации изображений"
