from size_chart_app.repositories.sessions import ShopSessionsRepository
from size_chart_app.repositories.templates import TemplatesRepository
from size_chart_app.repositories.theme_settings import ThemeSettingsRepository
