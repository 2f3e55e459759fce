"""Display preferences, branding, localization and SyncPlay routes"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, Response

from ..jellyfin.auth import RequestContext, get_request_context

LOCALIZATION_CACHE_CONTROL = "max-age=3600"

router = APIRouter(tags=["misc"])


@router.get("/DisplayPreferences/{dp_id}")
async def get_display_preferences(dp_id: str, context: RequestContext = Depends(get_request_context)):
    return {
        "Id": dp_id,
        "SortBy": "SortName",
        "SortOrder": "Ascending",
        "RememberIndexing": False,
        "RememberSorting": False,
        "PrimaryImageHeight": 250,
        "PrimaryImageWidth": 250,
        "ScrollDirection": "Horizontal",
        "ShowBackdrop": True,
        "ShowSidebar": False,
        "Client": "emby",
        "CustomPrefs": {
            "chromecastVersion": "stable",
            "skipForwardLength": "30000",
            "skipBackLength": "10000",
            "enableNextVideoInfoOverlay": "False",
            "tvhome": "null",
            "dashboardTheme": "null",
        },
    }


@router.post("/DisplayPreferences/{dp_id}")
async def update_display_preferences(dp_id: str, context: RequestContext = Depends(get_request_context)):
    # preferences are not stored, clients fall back to the defaults above
    return Response(status_code=204)


@router.get("/Branding/Configuration")
async def branding_configuration():
    return {"LoginDisclaimer": "", "CustomCss": "", "SplashscreenEnabled": False}


@router.get("/Branding/Css")
@router.get("/Branding/Css.css")
async def branding_css():
    return Response(content="", media_type="text/css")


def _cached(content) -> JSONResponse:
    return JSONResponse(content=content, headers={"Cache-Control": LOCALIZATION_CACHE_CONTROL})


@router.get("/Localization/Countries")
async def localization_countries():
    return _cached(
        [
            {
                "DisplayName": "United States",
                "Name": "US",
                "ThreeLetterISORegionName": "USA",
                "TwoLetterISORegionName": "US",
            }
        ]
    )


@router.get("/Localization/Cultures")
async def localization_cultures():
    return _cached(
        [
            {
                "DisplayName": "English",
                "Name": "English",
                "ThreeLetterISOLanguageName": "eng",
                "ThreeLetterISOLanguageNames": ["eng"],
                "TwoLetterISOLanguageName": "en",
            }
        ]
    )


@router.get("/Localization/Options")
async def localization_options():
    return _cached([{"Name": "English", "Value": "en-US"}])


@router.get("/Localization/ParentalRatings")
async def localization_parental_ratings():
    return _cached([{"Name": "Unrated", "Value": 0}])


@router.get("/SyncPlay/List")
async def syncplay_list(context: RequestContext = Depends(get_request_context)):
    return []


@router.post("/SyncPlay/New")
async def syncplay_new(context: RequestContext = Depends(get_request_context)):
    return JSONResponse(status_code=401, content={"status": 401, "message": "SyncPlay is not supported"})
