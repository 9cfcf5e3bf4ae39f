"""
Tests for multi-source aggregation.
"""
from forecast.aggregator import WeatherAggregator
from tests.conftest import make_source


class TestSelectMostAccurate:
    def setup_method(self):
        self.aggregator = WeatherAggregator()

    def test_highest_accuracy_wins(self):
        sources = [
            make_source("GFS", 0.90, 60),
            make_source("ECMWF", 0.95, 61),
            make_source("Met.no", 0.94, 62),
        ]
        assert self.aggregator.select_most_accurate(sources)["source"] == "ECMWF"

    def test_first_wins_on_tie(self):
        sources = [make_source("A", 0.9, 60), make_source("B", 0.9, 70)]
        assert self.aggregator.select_most_accurate(sources)["source"] == "A"

    def test_empty(self):
        assert self.aggregator.select_most_accurate([]) is None


class TestAggregate:
    def setup_method(self):
        self.aggregator = WeatherAggregator()

    def test_weighted_current_temperature(self):
        sources = [make_source("A", 1.0, 60), make_source("B", 0.5, 72)]

        aggregated = self.aggregator.aggregate(sources, "NYC")

        # (60 * 1.0 + 72 * 0.5) / 1.5 = 64
        assert aggregated["current_weather"]["temperature"] == 64
        assert aggregated["source"] == "Aggregated"
        assert aggregated["location"] == "NYC"
        assert aggregated["accuracy"] == 0.75

    def test_condition_vote_is_weighted(self):
        sources = [
            make_source("A", 0.95, 60, "Rain"),
            make_source("B", 0.5, 60, "Clear"),
            make_source("C", 0.4, 60, "Clear"),
        ]
        aggregated = self.aggregator.aggregate(sources, "NYC")
        assert aggregated["current_weather"]["condition"] == "Rain"
        assert aggregated["current_weather"]["description"] == "Rain"

    def test_unknown_conditions_ignored(self):
        sources = [make_source("A", 0.95, 60, "Unknown"), make_source("B", 0.5, 60, "Snow")]
        aggregated = self.aggregator.aggregate(sources, "NYC")
        assert aggregated["current_weather"]["condition"] == "Snow"

    def test_series_aligned_by_index(self):
        sources = [make_source("A", 1.0, 60), make_source("B", 1.0, 70)]

        aggregated = self.aggregator.aggregate(sources, "NYC")

        assert [h["temperature"] for h in aggregated["hourly_forecast"]] == [65, 66]
        assert aggregated["hourly_forecast"][0]["time"] == "01 PM"
        day = aggregated["daily_forecast"][0]
        assert day["high_temp"] == 70
        assert day["low_temp"] == 60
        assert day["description"] == day["condition"]

    def test_shorter_series_contribute_where_present(self):
        longer = make_source("A", 1.0, 60)
        shorter = make_source("B", 1.0, 70)
        shorter["hourly_forecast"] = shorter["hourly_forecast"][:1]

        aggregated = self.aggregator.aggregate([longer, shorter], "NYC")

        assert len(aggregated["hourly_forecast"]) == 2
        assert aggregated["hourly_forecast"][1]["temperature"] == 61

    def test_astronomy_from_first_reporting_source(self):
        first = make_source("A", 0.9, 60)
        second = make_source("B", 0.8, 60, sunrise="07:15 AM", aqi=2)

        current = self.aggregator.aggregate([first, second], "NYC")["current_weather"]

        assert current["sunrise"] == "07:15 AM"
        assert current["aqi"] == 2
        assert current["sunset"] is None

    def test_station_info_carried(self):
        source = make_source("WeatherAPI", 0.88, 60)
        source["station_info"] = {"name": "New York"}
        aggregated = self.aggregator.aggregate([make_source("A", 0.9, 60), source], "NYC")
        assert aggregated["station_info"] == {"name": "New York"}

    def test_zero_accuracy_sources_used_when_alone(self):
        aggregated = self.aggregator.aggregate([make_source("A", 0.0, 55)], "NYC")
        assert aggregated["current_weather"]["temperature"] == 55


class TestModelAgreement:
    def setup_method(self):
        self.aggregator = WeatherAggregator()

    def test_no_sources(self):
        assert self.aggregator.model_agreement([]) == 0

    def test_single_source(self):
        assert self.aggregator.model_agreement([make_source("A", 0.9, 60)]) == 100

    def test_full_agreement(self):
        sources = [make_source(str(i), 0.9, 60, "Clear") for i in range(4)]
        assert self.aggregator.model_agreement(sources) == 100

    def test_disagreement_lowers_score(self):
        sources = [
            make_source("A", 0.9, 50, "Clear"),
            make_source("B", 0.9, 70, "Rain"),
        ]
        # Spread of 10°F zeroes the temperature score; half agree on condition
        assert self.aggregator.model_agreement(sources) == 25
