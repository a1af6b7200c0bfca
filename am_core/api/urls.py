# am_core/api/urls.py
from rest_framework.routers import DefaultRouter

from am_core.assets.api.views import AssetViewSet
from am_core.audit.api.views import AuditEntryViewSet
from am_core.discrepancies.api.views import DiscrepancyViewSet
from am_core.movements.api.views import MovementViewSet
from am_core.sites.api.views import LocationViewSet, SiteViewSet

router = DefaultRouter()
router.register(r"sites", SiteViewSet, basename="site")
router.register(r"locations", LocationViewSet, basename="location")
router.register(r"assets", AssetViewSet, basename="asset")
router.register(r"movements", MovementViewSet, basename="movement")
router.register(r"discrepancies", DiscrepancyViewSet, basename="discrepancy")
router.register(r"audit", AuditEntryViewSet, basename="audit")

urlpatterns = router.urls
