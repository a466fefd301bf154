from gasledger.domain.legacy_csv import ParsedSale, parse_daily_csv


def test_reference_day():
    parsed = parse_daily_csv(
        "S/NO,GAS,PRICE,COMMENTS,UNIT,BALANCE\n"
        "1,5,6250,Paid,1250,115.00\n"
        "2,3,3750,Paid,1250,112.00\n"
    )
    assert parsed.unit_price == 1250
    assert parsed.opening_stock == 120
    assert parsed.sales == [
        ParsedSale(seq=1, kg=5, price=6250, comments="Paid"),
        ParsedSale(seq=2, kg=3, price=3750, comments="Paid"),
    ]


def test_opening_stock_comes_from_first_positive_row_only():
    parsed = parse_daily_csv(
        "1,0,0,void,1200,100\n"
        "2,4,4800,,1200,96\n"
        "3,6,7200,,1200,90\n"
    )
    assert parsed.opening_stock == 100  # 96 + 4
    assert [s.seq for s in parsed.sales] == [2, 3]


def test_last_positive_unit_price_wins():
    parsed = parse_daily_csv(
        "1,1,1000,,1000,50\n"
        "2,1,1100,,1100,49\n"
        "3,0,0,,1300,49\n"
        "4,1,0,,0,48\n"
    )
    assert parsed.unit_price == 1300
    assert [s.seq for s in parsed.sales] == [1, 2, 4]


def test_blank_short_and_header_lines_are_skipped():
    parsed = parse_daily_csv(
        "\n"
        "S/NO,GAS,PRICE,COMMENTS,UNIT,BALANCE\r\n"
        "1,2,2000\n"
        "   \n"
        "2,2,2000,ok\n"
    )
    assert parsed.sales == [ParsedSale(seq=2, kg=2, price=2000, comments="ok")]
    # no unit/balance columns: both default to 0
    assert parsed.unit_price == 0
    assert parsed.opening_stock == 2


def test_malformed_numbers_and_sequence():
    parsed = parse_daily_csv(
        "x,5,100,bad seq,1000,10\n"
        "1,abc,100,bad kg,1000,10\n"
        "2,3,n/a,bad price,1000,7\n"
    )
    assert parsed.sales == [ParsedSale(seq=2, kg=3, price=0, comments="bad price")]
    # the bad-seq row is not a sale but is still the first row with kg > 0
    assert parsed.opening_stock == 15
    assert parsed.unit_price == 1000


def test_quoted_comment_with_comma():
    parsed = parse_daily_csv('1,2,2500,"Paid, half on credit",1250,30\n')
    assert parsed.sales[0].comments == "Paid, half on credit"
    assert parsed.unit_price == 1250


def test_no_data_lines():
    assert parse_daily_csv("") is None
    assert parse_daily_csv("S/NO,GAS,PRICE,COMMENTS,UNIT,BALANCE\n\n") is None
    assert parse_daily_csv("1,0,0,,0,0\n").sales == []


def test_non_sale_rows_still_set_price_and_stock():
    parsed = parse_daily_csv("0,0,0,price change,1400,100\n1,5,7000,Paid,,95\n")
    assert parsed.unit_price == 1400
    assert parsed.opening_stock == 100
    assert parsed.sales == [ParsedSale(seq=1, kg=5, price=7000, comments="Paid")]


def test_unbalanced_quote_only_affects_its_own_line():
    parsed = parse_daily_csv(
        '1,5,6250,"Paid,1250,115\n'
        "2,3,3750,Paid,1250,112\n"
        "3,1,1250,Cash,1250,111\n"
    )
    assert [(s.seq, s.comments) for s in parsed.sales][-2:] == [(2, "Paid"), (3, "Cash")]
    assert parsed.unit_price == 1250


def test_non_finite_and_huge_numbers_count_as_zero():
    parsed = parse_daily_csv(
        "1,5,inf,Paid,1250,115\n"
        "2,inf,100,x,nan,100\n"
        "1e30,2,2000,big,1000,98\n"
        "nan,1,1000,y,-inf,97\n"
    )
    assert parsed.sales == [ParsedSale(seq=1, kg=5, price=0, comments="Paid")]
    assert parsed.unit_price == 1000
    assert parsed.opening_stock == 120
