import random
from typing import Optional, Tuple

CYCLIST_QUOTES: Tuple[Tuple[str, str], ...] = (
    ("It never gets easier, you just go faster.", "Greg LeMond"),
    ("The bicycle is a curious vehicle. Its passenger is its engine.", "John Howard"),
    ("Life is like riding a bicycle. To keep your balance, you must keep moving.", "Albert Einstein"),
    ("Don't buy upgrades, ride up grades.", "Eddy Merckx"),
    ("It is by riding a bicycle that you learn the contours of a country best.", "Ernest Hemingway"),
    ("Ride as much or as little, or as long or as short as you feel. But ride.", "Eddy Merckx"),
    ("Nothing compares to the simple pleasure of a bike ride.", "John F. Kennedy"),
    ("The race is won by the rider who can suffer the most.", "Eddy Merckx"),
    ("Cyclists see considerably more of this beautiful world than any other class of citizens.", "Dr. K.K. Doty"),
    ("A bicycle ride around the world begins with a single pedal stroke.", "Scott Stoll"),
    ("Melancholy is incompatible with bicycling.", "James E. Starrs"),
    ("The bicycle is the most civilized conveyance known to man.", "Iris Murdoch"),
    ("Whoever invented the bicycle deserves the thanks of humanity.", "Lord Charles Beresford"),
    ("Every time I see an adult on a bicycle, I no longer despair for the human race.", "H.G. Wells"),
    ("Get a bicycle. You will certainly not regret it, if you live.", "Mark Twain"),
    ("Cycling is unique. No other sport lets you go like that.", "Greg LeMond"),
    ("A bad day on a bike always beats a good day in the office.", "Unknown"),
    ("Four wheels move the body, two wheels move the soul.", "Unknown"),
    ("Shut up legs!", "Jens Voigt"),
)


def random_quote(rng: Optional[random.Random] = None) -> Tuple[str, str]:
    return (rng or random).choice(CYCLIST_QUOTES)


def format_quote_for_ride(quote: Tuple[str, str]) -> str:
    text, author = quote
    return f'"{text}" - {author}'
