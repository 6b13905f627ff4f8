from fastapi import APIRouter, Depends
import logging
import requests

from models.response import InstallInstructions, TTSStatusResponse
from utils.config import Settings, get_settings
from utils.response import api_response

router = APIRouter(prefix="/api/marytts", tags=["marytts"])
logger = logging.getLogger("api.marytts")

PROBE_TIMEOUT = 5

INSTALL_INSTRUCTIONS = InstallInstructions(
	title="Install MaryTTS for High-Quality Voices",
	steps=[
		"1. Download MaryTTS from GitHub releases",
		"2. Extract to your desired location",
		"3. Run: ./bin/marytts-server (Linux/Mac) or bin\\marytts-server.bat (Windows)",
		"4. Server will start on http://localhost:59125",
		"5. Refresh this page to enable high-quality TTS",
	],
	benefits=[
		"🎤 Professional voice quality",
		"🔒 Local processing (privacy)",
		"💰 No API costs",
		"🎛️ Voice customization options",
	],
)


def probe_marytts(server: str) -> TTSStatusResponse:
	"""Ask the MaryTTS server for its version and voices.

	Raises requests.RequestException or RuntimeError when the server is not usable.
	"""
	response = requests.get(f"{server}/version", timeout=PROBE_TIMEOUT)
	if not response.ok:
		raise RuntimeError("MaryTTS server not responding")
	version = response.text.strip()
	if not version:
		raise RuntimeError("MaryTTS server returned an empty version")

	voices = []
	voices_response = requests.get(f"{server}/voices", timeout=PROBE_TIMEOUT)
	if voices_response.ok:
		voices = [line.strip() for line in voices_response.text.split("\n") if line.strip()]

	return TTSStatusResponse(available=True, version=version, voices=voices, server=server)


@router.get("/status")
def marytts_status(settings: Settings = Depends(get_settings)):
	# Always 200: an unavailable TTS server is a state to report, not a failure
	try:
		result = probe_marytts(settings.marytts_url)
	except Exception as err:  # any probe failure means unavailable
		logger.info("marytts_unavailable", extra={"error": str(err)})
		result = TTSStatusResponse(available=False, error=str(err), installInstructions=INSTALL_INSTRUCTIONS)
	return api_response(result)
