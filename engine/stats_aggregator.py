import logging

import pandas as pd
from tabulate import tabulate

from engine.ball_event import FIELDER_WICKETS, ExtraType, WicketType
from engine.match_state import MatchState

logger = logging.getLogger(__name__)


class StatsAggregator:
    """
    Career batting and bowling tables over many scored matches.

    ``saved_states`` maps match id -> savedState dict (or MatchState).
    Matches flagged as duplicates must be filtered out by the caller
    (see utils.duplicates.filter_non_duplicate).
    """

    def __init__(self, saved_states, player_names=None):
        self.player_names = player_names or {}
        self.events_df = self._build_events_frame(saved_states)

    def _build_events_frame(self, saved_states):
        rows = []
        for match_id, saved in saved_states.items():
            try:
                state = saved if isinstance(saved, MatchState) else MatchState.from_dict(saved)
            except (KeyError, TypeError, ValueError) as e:
                logger.error(f"Skipping match {match_id}: unreadable saved state ({e})")
                continue
            for event in state.history:
                rows.append({
                    "match_id": match_id,
                    "innings": event.innings,
                    "over": event.over,
                    "kind": event.kind.value,
                    "striker_id": event.striker_id,
                    "non_striker_id": event.non_striker_id,
                    "bowler_id": event.bowler_id,
                    "runs": event.runs,
                    "extra_type": event.extra_type.value,
                    "extra_runs": event.extra_runs,
                    "penalty": event.penalty,
                    "is_delivery": event.is_delivery,
                    "is_legal": event.is_legal,
                    "counts_as_wicket": event.counts_as_wicket,
                    "bowler_credited": event.bowler_credited,
                    "wicket_type": event.wicket_type.value if event.wicket_type else None,
                    "out_player_id": event.out_player_id,
                    "fielder_id": event.fielder_id,
                })
        return pd.DataFrame(rows)

    def _name(self, player_id):
        return self.player_names.get(player_id, player_id)

    # ------------------------------------------------------------------ #
    #  Batting
    # ------------------------------------------------------------------ #

    def _batting_innings(self):
        df = self.events_df
        deliveries = df[df["is_delivery"]]

        faced = deliveries.assign(
            faced=(deliveries["extra_type"] != ExtraType.WIDE.value).astype(int),
            four=(deliveries["runs"] == 4).astype(int),
            six=(deliveries["runs"] == 6).astype(int),
        ).groupby(["striker_id", "match_id", "innings"]).agg(
            Runs=("runs", "sum"), Balls=("faced", "sum"), Fours=("four", "sum"), Sixes=("six", "sum"),
        )
        faced.index.names = ["player_id", "match_id", "innings"]

        # Batters who appeared without facing still had an innings.
        appeared = pd.concat([
            deliveries[["striker_id", "match_id", "innings"]].rename(columns={"striker_id": "player_id"}),
            deliveries[["non_striker_id", "match_id", "innings"]].rename(columns={"non_striker_id": "player_id"}),
        ])
        appeared = appeared[appeared["player_id"] != ""].drop_duplicates().set_index(
            ["player_id", "match_id", "innings"])

        outs = df[df["counts_as_wicket"] & df["out_player_id"].notna()]
        outs = outs.groupby(["out_player_id", "match_id", "innings"]).size().rename("Out")
        outs.index.names = ["player_id", "match_id", "innings"]

        innings = appeared.join(faced, how="outer").join(outs, how="left").fillna(0)
        return innings.reset_index()

    def _fielding(self):
        df = self.events_df
        dismissals = df[df["counts_as_wicket"] & df["fielder_id"].notna()]
        if dismissals.empty:
            return pd.DataFrame(columns=["player_id", "Catches", "Stumpings", "RunOuts"])
        catches = dismissals["wicket_type"].isin([WicketType.CAUGHT.value, WicketType.CAUGHT_BEHIND.value])
        return dismissals.assign(
            Catches=catches.astype(int),
            Stumpings=(dismissals["wicket_type"] == WicketType.STUMPED.value).astype(int),
            RunOuts=(dismissals["wicket_type"] == WicketType.RUN_OUT.value).astype(int),
        ).groupby("fielder_id")[["Catches", "Stumpings", "RunOuts"]].sum().rename_axis("player_id").reset_index()

    def batting_stats(self):
        if self.events_df.empty:
            return pd.DataFrame()

        innings = self._batting_innings()
        player_stats = innings.groupby("player_id").agg(
            Matches=("match_id", "nunique"),
            Innings=("innings", "count"),
            Runs=("Runs", "sum"),
            Balls=("Balls", "sum"),
            Fours=("Fours", "sum"),
            Sixes=("Sixes", "sum"),
            Outs=("Out", "sum"),
            HS=("Runs", "max"),
        ).reset_index()

        fifties = innings[(innings["Runs"] >= 50) & (innings["Runs"] < 100)].groupby("player_id").size().rename("50s")
        hundreds = innings[innings["Runs"] >= 100].groupby("player_id").size().rename("100s")
        ducks = innings[(innings["Runs"] == 0) & (innings["Out"] > 0)].groupby("player_id").size().rename("Ducks")
        for series in (fifties, hundreds, ducks):
            player_stats = player_stats.merge(series, left_on="player_id", right_index=True, how="left")

        player_stats = player_stats.merge(self._fielding(), on="player_id", how="left")
        player_stats.fillna(0, inplace=True)

        player_stats["NOs"] = player_stats["Innings"] - player_stats["Outs"]
        player_stats["Average"] = (player_stats["Runs"] / player_stats["Outs"].where(player_stats["Outs"] > 0)).fillna(0).round(2)
        player_stats["Strike Rate"] = (player_stats["Runs"] / player_stats["Balls"].where(player_stats["Balls"] > 0) * 100).fillna(0).round(2)
        player_stats.insert(0, "Player", player_stats["player_id"].map(self._name))

        ordered_cols = ["Player", "player_id", "Matches", "Innings", "Runs", "Balls", "Strike Rate", "Average",
                        "HS", "NOs", "50s", "100s", "Ducks", "Fours", "Sixes", "Catches", "Stumpings", "RunOuts"]
        int_cols = [c for c in ordered_cols if c not in ("Player", "player_id", "Strike Rate", "Average")]
        player_stats[int_cols] = player_stats[int_cols].astype(int)
        return player_stats[ordered_cols].sort_values("Runs", ascending=False, ignore_index=True)

    # ------------------------------------------------------------------ #
    #  Bowling
    # ------------------------------------------------------------------ #

    def bowling_stats(self):
        if self.events_df.empty:
            return pd.DataFrame()

        df = self.events_df
        deliveries = df[df["is_delivery"] & (df["bowler_id"] != "")]
        if deliveries.empty:
            return pd.DataFrame()

        illegal = deliveries["extra_type"].isin([ExtraType.WIDE.value, ExtraType.NO_BALL.value])
        deliveries = deliveries.assign(
            legal=deliveries["is_legal"].astype(int),
            conceded=deliveries["runs"] + (deliveries["extra_runs"] + deliveries["penalty"]).where(illegal, 0),
            credited=deliveries["bowler_credited"].astype(int),
        )

        overs = deliveries.groupby(["bowler_id", "match_id", "innings", "over"]).agg(
            legal=("legal", "sum"), conceded=("conceded", "sum"))
        maidens = overs[(overs["legal"] == 6) & (overs["conceded"] == 0)].groupby("bowler_id").size().rename("Maidens")

        spells = deliveries.groupby(["bowler_id", "match_id", "innings"]).agg(
            Balls=("legal", "sum"), Runs=("conceded", "sum"), Wickets=("credited", "sum"),
        ).reset_index()

        bowling_stats = spells.groupby("bowler_id").agg(
            Matches=("match_id", "nunique"),
            Balls=("Balls", "sum"),
            Runs=("Runs", "sum"),
            Wickets=("Wickets", "sum"),
        ).reset_index()

        best = spells.sort_values(["Wickets", "Runs"], ascending=[False, True]).drop_duplicates("bowler_id")
        best = best.set_index("bowler_id").apply(lambda row: f"{row['Wickets']}/{row['Runs']}", axis=1).rename("Best")
        three_w = spells[spells["Wickets"] >= 3].groupby("bowler_id").size().rename("3w")
        five_w = spells[spells["Wickets"] >= 5].groupby("bowler_id").size().rename("5w")
        for series in (maidens, three_w, five_w):
            bowling_stats = bowling_stats.merge(series, left_on="bowler_id", right_index=True, how="left")
        bowling_stats = bowling_stats.merge(best, left_on="bowler_id", right_index=True, how="left")
        bowling_stats.fillna({"Maidens": 0, "3w": 0, "5w": 0}, inplace=True)

        bowling_stats["Overs"] = bowling_stats["Balls"].apply(lambda b: f"{b // 6}.{b % 6}")
        bowling_stats["Economy"] = (bowling_stats["Runs"] / (bowling_stats["Balls"] / 6).where(bowling_stats["Balls"] > 0)).fillna(0).round(2)
        bowling_stats["Average"] = (bowling_stats["Runs"] / bowling_stats["Wickets"].where(bowling_stats["Wickets"] > 0)).fillna(0).round(2)
        bowling_stats["Strike Rate"] = (bowling_stats["Balls"] / bowling_stats["Wickets"].where(bowling_stats["Wickets"] > 0)).fillna(0).round(2)
        bowling_stats.insert(0, "Player", bowling_stats["bowler_id"].map(self._name))
        bowling_stats.rename(columns={"bowler_id": "player_id"}, inplace=True)

        ordered_cols = ["Player", "player_id", "Matches", "Overs", "Maidens", "Runs", "Wickets", "Best",
                        "Average", "Economy", "Strike Rate", "3w", "5w"]
        for col in ("Matches", "Maidens", "Runs", "Wickets", "3w", "5w"):
            bowling_stats[col] = bowling_stats[col].astype(int)
        return bowling_stats[ordered_cols].sort_values(["Wickets", "Runs"], ascending=[False, True], ignore_index=True)

    # ------------------------------------------------------------------ #
    #  Rendering
    # ------------------------------------------------------------------ #

    @staticmethod
    def to_table(df):
        """Plain-text table for logs and the scorecard endpoint."""
        if df.empty:
            return "No data"
        return tabulate(df.drop(columns=["player_id"], errors="ignore"), headers="keys",
                        tablefmt="grid", showindex=False)
