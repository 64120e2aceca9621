"""
Upload Service Map
Maps Platform enum to service implementations
"""
from delivery_recon.core.enum.Platform import Platform
from delivery_recon.services.PlatformAbstractService import PlatformDataService
from delivery_recon.services.upload.UberEatsDataService import UberEatsDataService
from delivery_recon.services.upload.DoorDashDataService import DoorDashDataService
from delivery_recon.services.upload.GrubhubDataService import GrubhubDataService

# Initialize services
uberEatsDataService = UberEatsDataService()
doorDashDataService = DoorDashDataService()
grubhubDataService = GrubhubDataService()


def createServiceMap():
    serviceMap = {
        Platform.UBER_EATS: uberEatsDataService,
        Platform.DOORDASH: doorDashDataService,
        Platform.GRUBHUB: grubhubDataService,
    }
    return serviceMap


serviceMap = createServiceMap()


def get_platform_service(platform) -> PlatformDataService:
    """Resolve a Platform (or platform tag string) to its data service"""
    return serviceMap[Platform.from_string(platform)]
