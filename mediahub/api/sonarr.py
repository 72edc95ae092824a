"""
Client for Sonarr, the series library manager.
"""

from datetime import date

from mediahub.models.arr import CalendarEpisode, Command, Series, SeriesLookup

from .arr import ArrClient


class SonarrClient(ArrClient[Series, SeriesLookup]):
    SERVICE_NAME = "Sonarr"
    LIBRARY_RESOURCE = "series"
    MEDIA_MODEL = Series
    LOOKUP_MODEL = SeriesLookup

    async def add_series(
        self,
        series: SeriesLookup,
        quality_profile_id: int,
        root_folder_path: str,
        monitored: bool = True,
        season_folder: bool = True,
        search_for_missing_episodes: bool = True,
    ) -> Series:
        """Adds a lookup hit to the library, monitoring every season."""
        body = {
            "title": series.title,
            "tvdbId": series.tvdb_id,
            "year": series.year,
            "titleSlug": series.title_slug,
            "images": [i.model_dump(by_alias=True) for i in series.images],
            "seasons": [
                {"seasonNumber": s.season_number, "monitored": monitored}
                for s in series.seasons
            ],
            "qualityProfileId": quality_profile_id,
            "rootFolderPath": root_folder_path,
            "monitored": monitored,
            "seasonFolder": season_folder,
            "addOptions": {"searchForMissingEpisodes": search_for_missing_episodes},
        }
        return await self._add_media(body)

    async def search_series(self, series_id: int) -> Command:
        return await self.issue_command("SeriesSearch", seriesId=series_id)

    async def search_season(self, series_id: int, season_number: int) -> Command:
        return await self.issue_command(
            "SeasonSearch", seriesId=series_id, seasonNumber=season_number
        )

    async def refresh_series(self, series_id: int | None = None) -> Command:
        if series_id is None:
            return await self.issue_command("RefreshSeries")
        return await self.issue_command("RefreshSeries", seriesId=series_id)

    async def calendar(
        self, start: date, end: date, include_series: bool = True
    ) -> list[CalendarEpisode]:
        """Lists episodes airing between ``start`` and ``end``."""
        params = {
            "start": start.isoformat(),
            "end": end.isoformat(),
            "includeSeries": str(include_series).lower(),
        }
        return await self._get("/calendar", list[CalendarEpisode], params)
