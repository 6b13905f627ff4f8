from fastapi import APIRouter, Depends
from fastapi.responses import Response

from utils.config import Settings, get_settings
from utils.sitemap import render_sitemap

router = APIRouter(tags=["sitemap"])

# Cached at the edge for a day, served stale while it refreshes
CACHE_CONTROL = "s-maxage=86400, stale-while-revalidate"


@router.get("/sitemap.xml")
def sitemap(settings: Settings = Depends(get_settings)):
	return Response(
		content=render_sitemap(settings.site_url),
		media_type="application/xml",
		headers={"Cache-Control": CACHE_CONTROL},
	)
