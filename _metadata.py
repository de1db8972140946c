"""
Reflux - Централизованные метаданные проекта

Общая информация о продукте, используемая клиентом и CLI.
"""

__product__ = "Reflux"
__version__ = "0.1"
__description__ = "Клиент жизненного цикла задач генерации изображений"
__author__ = "Reflux Team"
__license__ = "MIT"
__status__ = "Alpha"
__python_requires__ = ">=3.11"

# Детальное описание
__long_description__ = """
Reflux - клиентская часть для асинхронной генерации изображений через
удалённый сервис предсказаний.

Основные возможности:
- Создание задач генерации и отслеживание их статуса
- Пакетный polling незавершённых задач одним запросом
- Встраивание готовых изображений в data URI
- Метаданные размещения результатов на холсте (позиция, размер, поворот)
- Сохранение сессии между запусками
"""

# Технологический стек
__tech_stack__ = {
    "python": "3.11+",
    "http": "httpx (async)",
    "config": "python-dotenv",
    "tests": "pytest + pytest-asyncio",
}


def get_version_info():
    """Возвращает полную информацию о версии"""
    return f"{__product__} v{__version__} ({__status__})"
