"""
Reflux - Базовая библиотека

Содержит модели и логику без сетевой оркестрации:

Модули:
- models: Модели данных (Output, Placement, PredictionStatus)
- asset_inliner: Встраивание удалённых результатов в data URI
- errors: Ошибки конвертации результатов
"""

try:
    from _metadata import __version__, __product__
except ImportError:
    # Fallback на случай, если _metadata.py недоступен
    __version__ = "0.1"
    __product__ = "Reflux"
